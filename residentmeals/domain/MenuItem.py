"""MenuItem domain entity: an authoritative, purchasable item of the facility menu."""
from decimal import Decimal, InvalidOperation
from typing import Optional


def to_decimal(value) -> Decimal:
    '''Parse a price without passing through float.'''
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal('0')


class MenuItem:
    def __init__(self, id: str, name: str, meal_type: str, category: str, price=Decimal('0'),
                 description: Optional[str] = None, is_active: bool = True,
                 requires_bagel_type: Optional[bool] = None, excludes_side: bool = False,
                 display_order: int = 0):
        self.id = id
        self.name = name
        self.meal_type = meal_type
        self.category = category
        self.price = to_decimal(price)
        self.description = description
        self.is_active = is_active
        self.requires_bagel_type = requires_bagel_type
        self.excludes_side = excludes_side
        self.display_order = display_order

    def __repr__(self) -> str:
        return f"MenuItem({self.id!r}, {self.name!r}, {self.meal_type}/{self.category}, ${self.price})"

    @staticmethod
    def from_dict(data):
        '''Creates a MenuItem from its persisted form (camelCase or snake_case keys).'''
        d = dict(data)
        return MenuItem(
            id=str(d['id']),
            name=d.get('name', ''),
            meal_type=d.get('meal_type', d.get('mealType', '')),
            category=d.get('category', 'main'),
            price=d.get('price', '0'),
            description=d.get('description'),
            is_active=d.get('is_active', d.get('isActive', True)),
            requires_bagel_type=d.get("requires_bagel_type", d.get("requiresBagelType")),
            excludes_side=d.get('excludes_side', d.get('excludesSide', False)),
            display_order=d.get('display_order', d.get('displayOrder', 0)),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "mealType": self.meal_type,
            "category": self.category,
            "price": str(self.price),
            "isActive": self.is_active,
            "requiresBagelType": self.requires_bagel_type,
            "excludesSide": self.excludes_side,
            "displayOrder": self.display_order,
        }
