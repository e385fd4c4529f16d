from typing import Optional

from fastapi import APIRouter, Depends, Query

from residentmeals.api.dependencies import get_menu
from residentmeals.infra.Menu_Repository import MenuRepository
from residentmeals.utilities.constants import BAGEL_TYPES

router = APIRouter()


@router.get("/menu")
def list_menu(
    meal_type: Optional[str] = Query(default=None, alias="mealType", pattern=r'^(breakfast|lunch|dinner)$'),
    is_active: Optional[bool] = Query(default=True, alias="isActive"),
    menu: MenuRepository = Depends(get_menu),
):
    """Menu items for one meal type (all types when omitted), in display order."""
    items = menu.list_items(meal_type=meal_type, is_active=is_active)
    return {
        "success": True,
        "data": {"items": [i.to_dict() for i in items], "count": len(items), "bagelTypes": list(BAGEL_TYPES)},
    }
