"""PostalAddress value object, captured at checkout and copied onto the order."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from commerce.domain import commerce


@commerce.value_object
class PostalAddress:
    """A shipping address as the buyer entered it.

    Once recorded on a checkout session or an order it never changes. The
    country is an ISO 3166-1 alpha-2 code.
    """

    line1: String(required=True, max_length=255)
    line2: String(max_length=255)
    city: String(required=True, max_length=100)
    state: String(required=True, max_length=100)
    postal_code: String(required=True, max_length=20)
    country: String(required=True, max_length=2)

    @invariant.post
    def country_is_two_letter_code(self):
        if self.country and (len(self.country) != 2 or not self.country.isalpha()):
            raise ValidationError({"country": ["Country must be a two-letter code"]})

    @classmethod
    def from_dict(cls, data: dict) -> "PostalAddress":
        return cls(
            line1=data.get("line1"),
            line2=data.get("line2") or None,
            city=data.get("city"),
            state=data.get("state"),
            postal_code=data.get("postal_code"),
            country=(data.get("country") or "").upper() or None,
        )

    def to_dict(self) -> dict:
        return {
            "line1": self.line1,
            "line2": self.line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }
