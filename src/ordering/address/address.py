"""Address aggregate — a user's current shipping destination.

A user keeps at most one current address; it is overwritten whenever they
place an order somewhere else. Orders store their own immutable copy.
"""

from protean.fields import Identifier, String

from ordering.domain import ordering
from ordering.errors import AddressIncomplete

REQUIRED_ADDRESS_FIELDS = ("province", "district", "city", "street_line")

_MAX_LENGTHS = {
    "province": 100,
    "district": 100,
    "city": 100,
    "street_line": 255,
    "landmark": 255,
}


def validate_address(data: dict) -> dict:
    """Normalise a raw address mapping and reject missing or oversized parts."""
    cleaned = {key: (str(data.get(key) or "").strip() or None) for key in _MAX_LENGTHS}

    missing = [key for key in REQUIRED_ADDRESS_FIELDS if not cleaned[key]]
    if missing:
        raise AddressIncomplete(missing)

    too_long = [key for key, limit in _MAX_LENGTHS.items() if cleaned[key] and len(cleaned[key]) > limit]
    if too_long:
        raise AddressIncomplete(too_long, message=f"Address fields too long: {', '.join(too_long)}")

    return cleaned


@ordering.aggregate
class Address:
    user_id = Identifier(required=True)
    province = String(required=True, max_length=100)
    district = String(required=True, max_length=100)
    city = String(required=True, max_length=100)
    street_line = String(required=True, max_length=255)
    landmark = String(max_length=255)

    def update(self, province, district, city, street_line, landmark=None):
        self.province = province
        self.district = district
        self.city = city
        self.street_line = street_line
        self.landmark = landmark

    def to_dict(self) -> dict:
        return {
            "province": self.province,
            "district": self.district,
            "city": self.city,
            "street_line": self.street_line,
            "landmark": self.landmark,
        }


@ordering.repository(part_of=Address)
class AddressRepository:
    def for_user(self, user_id) -> Address | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first


class AddressBook:
    """Address store: the current address of each user."""

    def __init__(self, domain) -> None:
        self._domain = domain

    def get_by_user(self, user_id) -> Address | None:
        return self._domain.repository_for(Address).for_user(user_id)

    def upsert(self, user_id, address: dict) -> Address:
        cleaned = validate_address(address)
        repo = self._domain.repository_for(Address)
        current = repo.for_user(user_id)
        if current is None:
            current = Address(user_id=str(user_id), **cleaned)
        else:
            current.update(**cleaned)
        repo.add(current)
        return current
