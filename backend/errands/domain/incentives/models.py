"""Domain models for incentives: point awards and ratings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional


class AwardReason(str, Enum):
	REQUEST_ACCEPTED = "request_accepted"
	REQUEST_COMPLETED = "request_completed"
	RATING_SUBMITTED = "rating_submitted"


POINT_AWARDS: Dict[AwardReason, int] = {
	AwardReason.REQUEST_ACCEPTED: 5,
	AwardReason.REQUEST_COMPLETED: 10,
	AwardReason.RATING_SUBMITTED: 2,
}

MIN_SCORE = 1
MAX_SCORE = 5
LEADERBOARD_DEFAULT_LIMIT = 10


class TransactionType(str, Enum):
	REQUEST = "request"
	PRODUCT = "product"


@dataclass(slots=True)
class Rating:
	id: str
	rater_id: str
	rated_user_id: str
	transaction_id: str
	transaction_type: TransactionType
	score: int
	created_at: datetime
	comment: Optional[str] = None

	@classmethod
	def from_record(cls, record) -> "Rating":
		return cls(
			id=str(record["id"]),
			rater_id=str(record["rater_id"]),
			rated_user_id=str(record["rated_user_id"]),
			transaction_id=str(record["transaction_id"]),
			transaction_type=TransactionType(record["transaction_type"]),
			score=int(record["score"]),
			comment=record.get("comment"),
			created_at=record["created_at"],
		)

	def dedupe_key(self) -> tuple[str, str, str, str]:
		return (self.rater_id, self.rated_user_id, self.transaction_id, self.transaction_type.value)
