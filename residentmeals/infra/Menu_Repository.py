from typing import List, Optional

from residentmeals.domain.MenuItem import MenuItem
from residentmeals.infra.json_store import load_json
from residentmeals.infra.paths import MENU_FILE


class MenuRepository:
    """Read side of the facility menu; the authoritative source of item prices."""

    def __init__(self, path=MENU_FILE):
        self.path = path

    def _load(self) -> List[MenuItem]:
        return [MenuItem.from_dict(entry) for entry in load_json(self.path, [])]

    def list_items(self, meal_type: Optional[str] = None, is_active: Optional[bool] = None) -> List[MenuItem]:
        items = self._load()
        if meal_type:
            items = [i for i in items if i.meal_type == meal_type]
        if is_active is not None:
            items = [i for i in items if i.is_active == is_active]
        return sorted(items, key=lambda i: (i.display_order, i.name.lower()))

    def get_item(self, item_id: str) -> Optional[MenuItem]:
        for item in self._load():
            if item.id == item_id:
                return item
        return None
