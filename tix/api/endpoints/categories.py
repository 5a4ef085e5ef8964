from typing import Dict, List

from fastapi import APIRouter

from tix.models.event import EventCategory

router = APIRouter()

CATEGORY_LABELS = {
    EventCategory.MUSIC: "Music",
    EventCategory.TECH: "Technology",
    EventCategory.BUSINESS: "Business",
    EventCategory.FITNESS: "Fitness",
    EventCategory.FOOD: "Food & Drink",
    EventCategory.EDUCATION: "Education",
    EventCategory.ARTS: "Arts & Culture",
    EventCategory.NATURE: "Nature & Outdoors",
}


@router.get("", summary="Event Categories")  # type: ignore[misc]
async def list_categories() -> List[Dict[str, str]]:
    return [{"id": c.value, "name": CATEGORY_LABELS[c]} for c in EventCategory]
