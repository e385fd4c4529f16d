"""Meal domain entities: a (day, mealType) cell holding snapshots of the selected menu items."""
from decimal import Decimal
from typing import List, Optional

from residentmeals.domain.MenuItem import MenuItem, to_decimal


class MealItem:
    """Snapshot of a MenuItem taken when it was selected.

    Later menu price changes never reach an already-priced order.
    """

    def __init__(self, id: str, name: str, category: str, price=Decimal('0'),
                 requires_bagel_type: Optional[bool] = None):
        self.id = id
        self.name = name
        self.category = category
        self.price = to_decimal(price)
        self.requires_bagel_type = requires_bagel_type

    @staticmethod
    def from_menu_item(item: MenuItem) -> "MealItem":
        return MealItem(item.id, item.name, item.category, item.price,
                        requires_bagel_type=item.requires_bagel_type)

    @staticmethod
    def from_dict(data):
        d = dict(data)
        return MealItem(
            id=str(d['id']),
            name=d.get('name', ''),
            category=d.get('category', 'main'),
            price=d.get('price', '0'),
            requires_bagel_type=d.get('requiresBagelType'),
        )

    def to_dict(self):
        data = {"id": self.id, "name": self.name, "category": self.category, "price": str(self.price)}
        if self.requires_bagel_type is not None:
            data["requiresBagelType"] = self.requires_bagel_type
        return data

    def __eq__(self, other):
        if not isinstance(other, MealItem):
            return NotImplemented
        return self.to_dict() == other.to_dict()


class Meal:
    def __init__(self, day: str, meal_type: str, items: Optional[List[MealItem]] = None,
                 bagel_type: Optional[str] = None):
        self.day = day
        self.meal_type = meal_type
        self.items = items[:] if items else []
        self.bagel_type = bagel_type

    @property
    def key(self):
        return (self.day, self.meal_type)

    def item_total(self) -> Decimal:
        return sum((i.price for i in self.items), Decimal('0'))

    def __repr__(self) -> str:
        names = ", ".join(i.name for i in self.items)
        return f"{self.day} {self.meal_type}: {names}"

    @staticmethod
    def from_dict(data):
        d = dict(data)
        return Meal(
            day=d.get('day', ''),
            meal_type=d.get('mealType', d.get('meal_type', '')),
            items=[MealItem.from_dict(i) for i in d.get('items', [])],
            bagel_type=d.get('bagelType', d.get('bagel_type')),
        )

    def to_dict(self):
        return {
            "day": self.day,
            "mealType": self.meal_type,
            "items": [i.to_dict() for i in self.items],
            "bagelType": self.bagel_type,
        }
