"""Shared database handle.

The whole process talks to MySQL through one connection. Every session and
transaction holds ``Database.lock`` for its duration, so statements from
concurrent requests are serialised on that connection and a transaction runs
from BEGIN to COMMIT/ROLLBACK without interleaving.
"""

from __future__ import annotations

import atexit
import datetime as dt
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from flask import Flask
from flask_mysqldb import MySQL


logger = logging.getLogger(__name__)


class Database:
	def __init__(self, connect: Optional[Callable[[], Any]] = None) -> None:
		self.mysql = MySQL()
		self.lock = threading.RLock()
		self._connect = connect
		self._conn: Any = None

	def init_app(self, app: Flask) -> None:
		self.mysql.init_app(app)
		if self._connect is None:
			def _connect() -> Any:
				# flask-mysqldb reads its settings from current_app.
				with app.app_context():
					return self.mysql.connect

			self._connect = _connect
		app.extensions["database"] = self
		atexit.register(self.close)

	@property
	def is_open(self) -> bool:
		return self._conn is not None

	def open(self) -> Any:
		with self.lock:
			if self._conn is None:
				if self._connect is None:
					raise RuntimeError("Database is not bound to an application")
				self._conn = self._connect()
				self._conn.autocommit(True)
				logger.info("Database connection opened")
			return self._conn

	def close(self) -> None:
		with self.lock:
			if self._conn is None:
				return
			try:
				self._conn.close()
			finally:
				self._conn = None
				logger.info("Database connection closed")

	@contextmanager
	def session(self) -> Iterator[Any]:
		"""Yield a cursor on the shared connection (autocommit)."""
		with self.lock:
			cur = self.open().cursor()
			try:
				yield cur
			finally:
				cur.close()

	@contextmanager
	def transaction(self) -> Iterator[Any]:
		"""Yield a cursor inside BEGIN ... COMMIT.

		Any exception raised inside the block rolls the transaction back and
		propagates. A failed COMMIT is rolled back and re-raised as well.
		"""
		with self.lock:
			conn = self.open()
			cur = conn.cursor()
			try:
				conn.begin()
			except BaseException:
				cur.close()
				raise
			try:
				yield cur
			except BaseException:
				conn.rollback()
				raise
			else:
				try:
					conn.commit()
				except Exception:
					logger.exception("Commit failed, rolling back")
					conn.rollback()
					raise
			finally:
				cur.close()


def _stringify_temporal(row: Dict[str, Any]) -> Dict[str, Any]:
	for key, value in row.items():
		if isinstance(value, (dt.date, dt.datetime, dt.time)):
			row[key] = value.isoformat()
		elif isinstance(value, dt.timedelta):
			row[key] = str(value)
	return row


def fetchone_dict(cursor) -> Optional[Dict[str, Any]]:
	row = cursor.fetchone()
	if row is None:
		return None
	if not isinstance(row, dict):
		desc = [col[0] for col in cursor.description]
		row = dict(zip(desc, row))
	return _stringify_temporal(dict(row))


def fetchall_dict(cursor) -> List[Dict[str, Any]]:
	rows = cursor.fetchall() or []
	if rows and not isinstance(rows[0], dict):
		desc = [col[0] for col in cursor.description]
		rows = [dict(zip(desc, r)) for r in rows]
	return [_stringify_temporal(dict(r)) for r in rows]


def drain_results(cursor) -> None:
	# Multi-statement scripts and CALL leave extra result sets behind.
	while cursor.nextset():
		pass
