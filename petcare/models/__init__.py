"""Database models."""

from petcare.models.appointments import appointments
from petcare.models.base import metadata
from petcare.models.orders import orders
from petcare.models.pets import pets
from petcare.models.profiles import profiles
from petcare.models.vets import vets

__all__ = [
    "appointments",
    "metadata",
    "orders",
    "pets",
    "profiles",
    "vets",
]
