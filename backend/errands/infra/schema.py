"""Idempotent DDL applied at startup when running on Postgres.

``users`` and ``products`` belong to the identity and marketplace services; the
definitions below only create them when absent so a fresh database boots.
"""

from __future__ import annotations

import logging

import asyncpg

_LOGGER = logging.getLogger(__name__)

STATEMENTS = (
	"""
	CREATE TABLE IF NOT EXISTS users (
		id TEXT PRIMARY KEY,
		name TEXT NOT NULL,
		role TEXT NOT NULL CHECK (role IN ('hosteller', 'dayscholar', 'admin')),
		is_verified BOOLEAN NOT NULL DEFAULT FALSE,
		points INTEGER NOT NULL DEFAULT 0,
		average_rating NUMERIC(2, 1) NOT NULL DEFAULT 0.0
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS products (
		id TEXT PRIMARY KEY,
		seller_id TEXT NOT NULL REFERENCES users(id),
		name TEXT NOT NULL,
		status TEXT NOT NULL DEFAULT 'available' CHECK (status IN ('available', 'reserved', 'sold')),
		buyer_id TEXT REFERENCES users(id)
	)
	""",
	"""
	CREATE TABLE IF NOT EXISTS delivery_requests (
		id TEXT PRIMARY KEY,
		requester_id TEXT NOT NULL REFERENCES users(id),
		fulfiller_id TEXT REFERENCES users(id),
		item_name TEXT NOT NULL,
		description TEXT,
		quantity INTEGER NOT NULL DEFAULT 1 CHECK (quantity >= 1),
		expected_price NUMERIC(10, 2) NOT NULL CHECK (expected_price >= 0),
		deadline TIMESTAMPTZ NOT NULL,
		delivery_location TEXT NOT NULL,
		is_urgent BOOLEAN NOT NULL DEFAULT FALSE,
		category TEXT NOT NULL DEFAULT 'other'
			CHECK (category IN ('groceries', 'medicines', 'stationery', 'food', 'other')),
		status TEXT NOT NULL DEFAULT 'pending'
			CHECK (status IN ('pending', 'accepted', 'completed', 'cancelled')),
		created_at TIMESTAMPTZ NOT NULL,
		updated_at TIMESTAMPTZ NOT NULL,
		accepted_at TIMESTAMPTZ,
		completed_at TIMESTAMPTZ,
		cancelled_at TIMESTAMPTZ,
		CONSTRAINT fulfiller_matches_status CHECK (
			(fulfiller_id IS NOT NULL) = (status IN ('accepted', 'completed'))
		)
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_requests_open ON delivery_requests (is_urgent DESC, created_at DESC) WHERE status IN ('pending', 'accepted')",
	"CREATE INDEX IF NOT EXISTS idx_requests_requester ON delivery_requests (requester_id, created_at DESC)",
	"CREATE INDEX IF NOT EXISTS idx_requests_fulfiller ON delivery_requests (fulfiller_id, created_at DESC)",
	"""
	CREATE TABLE IF NOT EXISTS request_transitions (
		id BIGSERIAL PRIMARY KEY,
		request_id TEXT NOT NULL REFERENCES delivery_requests(id),
		transition TEXT NOT NULL,
		from_status TEXT NOT NULL,
		to_status TEXT NOT NULL,
		actor_id TEXT NOT NULL,
		fulfiller_id TEXT,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_request_transitions_request ON request_transitions (request_id, created_at)",
	"""
	CREATE TABLE IF NOT EXISTS notifications (
		id TEXT PRIMARY KEY,
		user_id TEXT NOT NULL,
		category TEXT NOT NULL,
		title TEXT NOT NULL,
		message TEXT NOT NULL,
		related_id TEXT,
		is_read BOOLEAN NOT NULL DEFAULT FALSE,
		created_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (user_id, created_at DESC)",
	"""
	CREATE TABLE IF NOT EXISTS messages (
		id TEXT PRIMARY KEY,
		sender_id TEXT NOT NULL,
		receiver_id TEXT NOT NULL,
		content TEXT NOT NULL CHECK (char_length(content) BETWEEN 1 AND 4000),
		request_id TEXT,
		product_id TEXT,
		is_read BOOLEAN NOT NULL DEFAULT FALSE,
		sent_at TIMESTAMPTZ NOT NULL
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_messages_pair ON messages (sender_id, receiver_id, sent_at)",
	"CREATE INDEX IF NOT EXISTS idx_messages_request ON messages (request_id, sent_at) WHERE request_id IS NOT NULL",
	"""
	CREATE TABLE IF NOT EXISTS ratings (
		id TEXT PRIMARY KEY,
		rater_id TEXT NOT NULL,
		rated_user_id TEXT NOT NULL,
		transaction_id TEXT NOT NULL,
		transaction_type TEXT NOT NULL CHECK (transaction_type IN ('request', 'product')),
		score SMALLINT NOT NULL CHECK (score BETWEEN 1 AND 5),
		comment TEXT,
		created_at TIMESTAMPTZ NOT NULL,
		UNIQUE (rater_id, rated_user_id, transaction_id, transaction_type)
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_ratings_rated ON ratings (rated_user_id, created_at DESC)",
)


async def apply(pool: asyncpg.pool.Pool) -> None:
	async with pool.acquire() as conn:
		async with conn.transaction():
			for statement in STATEMENTS:
				await conn.execute(statement)
	_LOGGER.info("schema_applied", extra={"statements": len(STATEMENTS)})
