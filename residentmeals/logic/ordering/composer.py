"""Draft composition: the working set of meals for one order being edited.

An OrderDraft is an explicit value object; each order being edited gets its own
instance, there is no module-level draft state. Persisting a draft is the
lifecycle's job (OrderLifecycle.save_draft).
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from residentmeals.domain.Meal import Meal, MealItem
from residentmeals.domain.errors import ValidationError
from residentmeals.utilities.constants import (
    DAYS_OF_WEEK, MEAL_TYPES, MIN_ITEMS_PER_MEAL, MAX_ITEMS_PER_MEAL, MAX_MEALS_PER_ORDER,
)

MealKey = Tuple[str, str]


def requires_bagel_type(items: Iterable[MealItem]) -> bool:
    """True if any selected item needs a bagel type.

    The menu's ``requires_bagel_type`` flag decides when it is set. Snapshots
    without the flag fall back to the name: it must mention "bagel" but not
    "type" (case-insensitive).
    """
    for item in items:
        flag = getattr(item, "requires_bagel_type", None)
        if flag is not None:
            if flag:
                return True
            continue
        name = (item.name or "").lower()
        if "bagel" in name and "type" not in name:
            return True
    return False


def _check_cell(day: str, meal_type: str) -> None:
    if day not in DAYS_OF_WEEK:
        raise ValidationError(f"invalid day '{day}'", details={"allowed": list(DAYS_OF_WEEK)})
    if meal_type not in MEAL_TYPES:
        raise ValidationError(f"invalid meal type '{meal_type}'", details={"allowed": list(MEAL_TYPES)})


class OrderDraft:
    """Meals of one in-progress order keyed by (day, meal type)."""

    def __init__(self, meals: Optional[Iterable[Meal]] = None):
        self._meals: Dict[MealKey, Meal] = {}
        for meal in meals or []:
            if meal.items:
                self.set_meal(meal.day, meal.meal_type, meal.items, meal.bagel_type)

    def set_meal(self, day: str, meal_type: str, items: List[MealItem],
                 bagel_type: Optional[str] = None) -> Dict[MealKey, Meal]:
        """Replace the meal at (day, meal_type) with ``items``. Returns the updated meal map."""
        _check_cell(day, meal_type)
        items = list(items or [])
        if len(items) < MIN_ITEMS_PER_MEAL:
            raise ValidationError(f"{day} {meal_type}: at least {MIN_ITEMS_PER_MEAL} item required")
        if len(items) > MAX_ITEMS_PER_MEAL:
            raise ValidationError(
                f"{day} {meal_type}: at most {MAX_ITEMS_PER_MEAL} items per meal (got {len(items)})"
            )
        ids = [i.id for i in items]
        if len(set(ids)) != len(ids):
            raise ValidationError(f"{day} {meal_type}: the same item was selected twice")
        if not requires_bagel_type(items):
            bagel_type = None
        self._meals[(day, meal_type)] = Meal(day, meal_type, items, bagel_type)
        return self.meal_map()

    def clear_meal(self, day: str, meal_type: str) -> Dict[MealKey, Meal]:
        _check_cell(day, meal_type)
        self._meals.pop((day, meal_type), None)
        return self.meal_map()

    def get_meal(self, day: str, meal_type: str) -> Optional[Meal]:
        return self._meals.get((day, meal_type))

    def meal_map(self) -> Dict[MealKey, Meal]:
        return dict(self._meals)

    @property
    def meals(self) -> List[Meal]:
        """Meals in calendar order (Monday breakfast .. Sunday dinner)."""
        order = {d: i for i, d in enumerate(DAYS_OF_WEEK)}
        slot = {m: i for i, m in enumerate(MEAL_TYPES)}
        return sorted(self._meals.values(), key=lambda m: (order[m.day], slot[m.meal_type]))

    def __len__(self) -> int:
        return len(self._meals)

    def validate_complete(self) -> None:
        """Checks a draft must pass before it can be persisted or submitted."""
        if not self._meals:
            raise ValidationError("at least one meal required")
        if len(self._meals) > MAX_MEALS_PER_ORDER:
            raise ValidationError(f"at most {MAX_MEALS_PER_ORDER} meals per order")
        for meal in self.meals:
            if not MIN_ITEMS_PER_MEAL <= len(meal.items) <= MAX_ITEMS_PER_MEAL:
                raise ValidationError(f"{meal.day} {meal.meal_type}: item count out of bounds")
            if requires_bagel_type(meal.items) and not meal.bagel_type:
                raise ValidationError(f"{meal.day} {meal.meal_type}: please select a bagel type")


def compose_from_catalog(meal_requests, catalog) -> OrderDraft:
    """Build a draft from client meal cells, resolving every item against the menu.

    ``meal_requests`` are objects with ``day``, ``meal_type``, ``items`` (each
    with an ``id``) and ``bagel_type``. Client-sent names and prices are ignored.
    Cells with no items count as cleared.
    """
    draft = OrderDraft()
    seen = set()
    for req in meal_requests:
        _check_cell(req.day, req.meal_type)
        key = (req.day, req.meal_type)
        if key in seen:
            raise ValidationError(f"{req.day} {req.meal_type} appears more than once")
        seen.add(key)
        if not req.items:
            continue
        if len(req.items) > MAX_ITEMS_PER_MEAL:
            raise ValidationError(
                f"{req.day} {req.meal_type}: at most {MAX_ITEMS_PER_MEAL} items per meal (got {len(req.items)})"
            )
        snapshots = []
        for requested in req.items:
            menu_item = catalog.get_item(requested.id)
            if menu_item is None or not menu_item.is_active:
                raise ValidationError(f"menu item '{requested.id}' is not available")
            if menu_item.meal_type != req.meal_type:
                raise ValidationError(
                    f"'{menu_item.name}' is a {menu_item.meal_type} item and cannot be ordered for {req.meal_type}"
                )
            snapshots.append(MealItem.from_menu_item(menu_item))
        draft.set_meal(req.day, req.meal_type, snapshots, req.bagel_type)
    return draft


__all__ = ["OrderDraft", "requires_bagel_type", "compose_from_catalog"]
