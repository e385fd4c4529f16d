"""
Input validation schemas using Pydantic for resident order requests.

Field names follow the camelCase wire format used by the ordering frontend;
handlers read them back through the snake_case attribute names.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Optional
from datetime import date


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


class MealItemInput(_WireModel):
    """A selected menu item. Only the id is trusted; name/price are re-read from the menu."""
    id: str = Field(..., min_length=1)


class MealInput(_WireModel):
    """Schema for one (day, mealType) cell."""
    day: str = Field(..., pattern=r'^(Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday)$')
    meal_type: str = Field(..., alias='mealType', pattern=r'^(breakfast|lunch|dinner)$')
    items: List[MealItemInput] = Field(default_factory=list)
    bagel_type: Optional[str] = Field(None, alias='bagelType', max_length=50)

    @field_validator('bagel_type')
    @classmethod
    def blank_bagel_type_is_none(cls, v):
        """Treat an empty bagel type as not provided."""
        if isinstance(v, str):
            v = v.strip()
        return v or None


class AddressInput(_WireModel):
    street: str = ''
    city: str = ''
    state: str = 'NY'
    zip_code: str = ''


class OrderCreateInput(_WireModel):
    """Schema for creating a draft resident order."""
    resident_id: str = Field(..., alias='residentId', min_length=1)
    week_start_date: date = Field(..., alias='weekStartDate')
    week_end_date: date = Field(..., alias='weekEndDate')
    meals: List[MealInput]
    delivery_address: Optional[AddressInput] = Field(None, alias='deliveryAddress')
    billing_email: Optional[EmailStr] = Field(None, alias='billingEmail')
    billing_name: Optional[str] = Field(None, alias='billingName', max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


class OrderUpdateInput(_WireModel):
    """Schema for updating a draft; omitted fields are left unchanged."""
    meals: Optional[List[MealInput]] = None
    billing_email: Optional[EmailStr] = Field(None, alias='billingEmail')
    billing_name: Optional[str] = Field(None, alias='billingName', max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


class SubmitPaymentInput(_WireModel):
    payment_method_id: Optional[str] = Field(None, alias='paymentMethodId')
