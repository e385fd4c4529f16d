"""Resident and Facility domain entities (collaborator data owned by the facility admin screens)."""
from typing import Optional


class Facility:
    def __init__(self, id: str, name: str = "", address: Optional[dict] = None, is_active: bool = True):
        self.id = id
        self.name = name
        self.address = dict(address) if address else {}
        self.is_active = is_active

    @staticmethod
    def from_dict(data):
        d = dict(data)
        return Facility(
            id=str(d['id']),
            name=d.get('name', ''),
            address=d.get('address'),
            is_active=d.get('isActive', d.get('is_active', True)),
        )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "address": self.address, "isActive": self.is_active}


class Resident:
    def __init__(self, id: str, facility_id: str, name: str, room_number: Optional[str] = None,
                 dietary_restrictions: Optional[str] = None, allergies: Optional[str] = None,
                 notes: Optional[str] = None, billing_name: Optional[str] = None,
                 billing_email: Optional[str] = None, billing_phone: Optional[str] = None,
                 payment_method_id: Optional[str] = None, is_active: bool = True,
                 assigned_user_id: Optional[str] = None):
        self.id = id
        self.facility_id = facility_id
        self.name = name
        self.room_number = room_number
        self.dietary_restrictions = dietary_restrictions
        self.allergies = allergies
        self.notes = notes
        self.billing_name = billing_name
        self.billing_email = billing_email
        self.billing_phone = billing_phone
        self.payment_method_id = payment_method_id
        self.is_active = is_active
        self.assigned_user_id = assigned_user_id

    def __str__(self) -> str:
        room = f" - Room {self.room_number}" if self.room_number else ""
        return f"{self.name}{room}"

    _KEYS = {
        "facilityId": "facility_id",
        "roomNumber": "room_number",
        "dietaryRestrictions": "dietary_restrictions",
        "billingName": "billing_name",
        "billingEmail": "billing_email",
        "billingPhone": "billing_phone",
        "paymentMethodId": "payment_method_id",
        "isActive": "is_active",
        "assignedUserId": "assigned_user_id",
    }

    @staticmethod
    def from_dict(data):
        '''Creates a Resident from a dictionary. Ignores unknown keys.'''
        d = dict(data)
        kwargs = {"id": str(d["id"])}
        for wire, attr in Resident._KEYS.items():
            if wire in d:
                kwargs[attr] = d[wire]
            elif attr in d:
                kwargs[attr] = d[attr]
        for attr in ("name", "allergies", "notes"):
            if attr in d:
                kwargs[attr] = d[attr]
        kwargs.setdefault("name", "")
        kwargs.setdefault("facility_id", "")
        return Resident(**kwargs)

    def to_dict(self):
        data = {"id": self.id, "name": self.name, "allergies": self.allergies, "notes": self.notes}
        for wire, attr in self._KEYS.items():
            data[wire] = getattr(self, attr)
        return data
