from typing import List, Optional

from residentmeals.domain.Resident import Facility, Resident
from residentmeals.infra.json_store import load_json
from residentmeals.infra.paths import RESIDENTS_FILE, FACILITIES_FILE


class ResidentRepository:
    """Lookup of residents and their facilities (maintained by the facility admin screens)."""

    def __init__(self, residents_path=RESIDENTS_FILE, facilities_path=FACILITIES_FILE):
        self.residents_path = residents_path
        self.facilities_path = facilities_path

    def _residents(self) -> List[Resident]:
        return [Resident.from_dict(r) for r in load_json(self.residents_path, [])]

    def get_resident(self, resident_id: str) -> Optional[Resident]:
        for resident in self._residents():
            if resident.id == resident_id:
                return resident
        return None

    def resident_ids_assigned_to(self, user_id: str) -> List[str]:
        return [r.id for r in self._residents() if r.assigned_user_id == user_id]

    def get_facility(self, facility_id: str) -> Optional[Facility]:
        for entry in load_json(self.facilities_path, []):
            if str(entry.get("id")) == facility_id:
                return Facility.from_dict(entry)
        return None
