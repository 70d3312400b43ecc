from typing import Iterable, Optional

from .models import Authorization, Recycler


DEFAULT_RECYCLERS = (
    Recycler(name="Green India E-Waste & Recycling OPC", location="Thane, Maharashtra", notes="Authorized dismantler (valid till 2026)"),
    Recycler(name="Green IT Recycling Center / Centre", location="Pune, Maharashtra", notes="Authorized dismantlers"),
    Recycler(name="Green Planet Recycling Solutions", location="Thane, Maharashtra", notes="Authorized dismantler"),
    Recycler(name="Green Tech Solution Industries", location="Solapur, Maharashtra", notes="Authorization expired"),
    Recycler(name="Green Valley E Waste Management", location="Palghar, Maharashtra", notes="Authorized dismantler"),
    Recycler(name="Greenscape Eco Management Pvt. Ltd.", location="Maharashtra", notes="Authorization expired"),
    Recycler(name="J.S. Enterprises", location="Pune, Maharashtra", notes="Authorized dismantler"),
    Recycler(name="JRS Recycling Solutions Pvt. Ltd.", location="Thane, Maharashtra", notes="Authorized dismantler"),
    Recycler(name="ECS Environment Pvt. Ltd.", location="Ahmedabad", notes="Formal recycler, data sanitization"),
    Recycler(name="3R Recycler Pvt. Ltd.", location="New Delhi", notes="Clean-engineering e-waste recycler"),
    Recycler(name="E Parisaraa Pvt. Ltd.", location="Bengaluru", notes="Secure disposal & recycling"),
    Recycler(name="Koscove E-Waste Pvt. Ltd.", location="Dadri/NCR", notes="Pickup + R2-certified processing"),
    Recycler(name="Resource E Waste Solutions Pvt. Ltd.", location="New Delhi", notes="Sustainable, compliant recycling"),
    Recycler(name="Pro E-Waste Recycling", location="Faridabad", notes="Newer recycler (since 2020)"),
    Recycler(name="Hulladek Recycling", location="Kolkata", notes="Authorized under 2022 rules"),
    Recycler(name="Star E Processors", location="Mumbai / Raipur", notes="CPCB-authorized full-service recycler"),
    Recycler(name="Elxion", location="Bengaluru", notes="ISO- & KSPCB-licensed, full services"),
    Recycler(name="EWRI (E-Waste Recyclers India)", location="Delhi/NCR", notes="Mechanical recycling specialists"),
    Recycler(name="Bharat E Waste Recycling Co.", location="Mumbai / Nationwide", notes="End-to-end ethical recycling"),
    Recycler(name="Eco-Tech Recycling", location="Mumbai", notes="Prominent Mumbai-based recycler"),
    Recycler(name="Green India E-Waste Recycling", location="Pan-India", notes="Compliance-supported recycler"),
)


class RecyclerDirectory:
    """Read-only directory of authorized e-waste recyclers."""

    def __init__(self, recyclers: Optional[Iterable[Recycler]] = None):
        self._recyclers = tuple(DEFAULT_RECYCLERS if recyclers is None else recyclers)

    def list(
        self,
        query: Optional[str] = None,
        authorization: Authorization = Authorization.ALL,
    ) -> list[Recycler]:
        needle = (query or "").strip().lower()
        results = []
        for recycler in self._recyclers:
            if needle and needle not in recycler.name.lower() and needle not in recycler.location.lower():
                continue
            if authorization == Authorization.AUTHORIZED and recycler.authorization_expired:
                continue
            if authorization == Authorization.EXPIRED and not recycler.authorization_expired:
                continue
            results.append(recycler)
        return results
