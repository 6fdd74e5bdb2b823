"""Read models for collaborators owned by other services (users, products)."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
	HOSTELLER = "hosteller"
	DAYSCHOLAR = "dayscholar"
	ADMIN = "admin"


class ProductStatus(str, Enum):
	AVAILABLE = "available"
	RESERVED = "reserved"
	SOLD = "sold"


@dataclass(slots=True)
class User:
	id: str
	name: str
	role: UserRole
	is_verified: bool = True
	points: int = 0
	average_rating: Decimal = Decimal("0.0")

	@classmethod
	def from_record(cls, record) -> "User":
		return cls(
			id=str(record["id"]),
			name=record["name"],
			role=UserRole(record["role"]),
			is_verified=bool(record["is_verified"]),
			points=int(record["points"]),
			average_rating=Decimal(str(record["average_rating"])),
		)

	def to_public(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"role": self.role.value,
			"points": self.points,
			"average_rating": float(self.average_rating),
		}


@dataclass(slots=True)
class Product:
	id: str
	seller_id: str
	name: str
	status: ProductStatus = ProductStatus.AVAILABLE
	buyer_id: Optional[str] = None

	@classmethod
	def from_record(cls, record) -> "Product":
		return cls(
			id=str(record["id"]),
			seller_id=str(record["seller_id"]),
			name=record["name"],
			status=ProductStatus(record["status"]),
			buyer_id=str(record["buyer_id"]) if record.get("buyer_id") else None,
		)
