from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    and_,
    create_engine,
    delete,
    insert,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from docsearch.core.errors import PermissionStoreError
from docsearch.core.types import Grant, PermissionLevel
from docsearch.permissions.filter import is_path_matching_or_parent

logger = logging.getLogger(__name__)

metadata = MetaData()

document_path_permissions = Table(
    "document_path_permissions",
    metadata,
    Column("user_id", BigInteger, primary_key=True, autoincrement=False),
    Column("document_path", String(500), primary_key=True),
    Column("collection_key", String(50), nullable=True),
    Column("permission_level", String(20), nullable=False),
    Column("granted_at", DateTime(timezone=True), nullable=False),
    Column("granted_by", BigInteger, nullable=True),
    Index("idx_path_perm_user", "user_id"),
    Index("idx_path_perm_path", "document_path"),
)


def _row_to_grant(row) -> Grant:
    return Grant(
        user_id=int(row["user_id"]),
        document_path=row["document_path"],
        level=PermissionLevel(row["permission_level"]),
        collection_key=row["collection_key"],
        granted_at=row["granted_at"],
        granted_by=row["granted_by"],
    )


class SqlPermissionStore:
    """
    Path grants per user. (user_id, document_path) is unique; writing a
    grant for an existing key replaces it.
    """

    def __init__(self, dsn: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            if dsn is None:
                raise ValueError("either dsn or engine is required")
            engine = create_engine(dsn, pool_pre_ping=True, future=True)
        self.engine: Engine = engine

    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def find_grants_for_user(self, user_id: int) -> List[Grant]:
        q = (
            select(document_path_permissions)
            .where(document_path_permissions.c.user_id == user_id)
            .order_by(document_path_permissions.c.document_path)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(q).mappings().all()
        except SQLAlchemyError as exc:
            raise PermissionStoreError(f"grant lookup failed for user_id={user_id}") from exc
        return [_row_to_grant(r) for r in rows]

    def find_grant(self, user_id: int, document_path: str) -> Optional[Grant]:
        try:
            with self.engine.connect() as conn:
                return self._find(conn, user_id, document_path)
        except SQLAlchemyError as exc:
            raise PermissionStoreError(f"grant lookup failed for user_id={user_id}") from exc

    def grant_read(
        self,
        user_id: int,
        document_path: str,
        collection_key: Optional[str] = None,
        granted_by: Optional[int] = None,
    ) -> Grant:
        try:
            with self.engine.begin() as conn:
                existing = self._find(conn, user_id, document_path)
                if existing is not None and existing.level is PermissionLevel.READ:
                    logger.debug("path permission already exists: user_id=%s, path=%s", user_id, document_path)
                    return existing

                # a READ on the parent makes child READ grants redundant
                redundant = [
                    g.document_path
                    for g in self._find_all(conn, user_id)
                    if g.level is PermissionLevel.READ
                    and g.document_path != document_path
                    and is_path_matching_or_parent(g.document_path, document_path)
                ]
                if redundant:
                    conn.execute(
                        delete(document_path_permissions).where(
                            and_(
                                document_path_permissions.c.user_id == user_id,
                                document_path_permissions.c.document_path.in_(redundant),
                            )
                        )
                    )
                    logger.info(
                        "cleaned up %d redundant child READ permissions: user_id=%s, parent_path=%s, removed=%s",
                        len(redundant), user_id, document_path, redundant,
                    )

                grant = self._put(conn, user_id, document_path, PermissionLevel.READ, collection_key, granted_by)
        except SQLAlchemyError as exc:
            raise PermissionStoreError(f"grant READ failed for user_id={user_id}, path={document_path}") from exc

        logger.info("path permission granted: user_id=%s, path=%s", user_id, document_path)
        return grant

    def grant_deny(
        self,
        user_id: int,
        document_path: str,
        collection_key: Optional[str] = None,
        granted_by: Optional[int] = None,
    ) -> Grant:
        try:
            with self.engine.begin() as conn:
                existing = self._find(conn, user_id, document_path)
                if existing is not None and existing.level is PermissionLevel.DENY:
                    logger.debug("path DENY already exists: user_id=%s, path=%s", user_id, document_path)
                    return existing
                if existing is not None:
                    logger.info("replacing READ with DENY: user_id=%s, path=%s", user_id, document_path)
                # child READ grants stay as exceptions to the deny
                grant = self._put(conn, user_id, document_path, PermissionLevel.DENY, collection_key, granted_by)
        except SQLAlchemyError as exc:
            raise PermissionStoreError(f"grant DENY failed for user_id={user_id}, path={document_path}") from exc

        logger.info("path DENY granted: user_id=%s, path=%s", user_id, document_path)
        return grant

    def revoke(self, user_id: int, document_path: str) -> bool:
        try:
            with self.engine.begin() as conn:
                res = conn.execute(
                    delete(document_path_permissions).where(
                        and_(
                            document_path_permissions.c.user_id == user_id,
                            document_path_permissions.c.document_path == document_path,
                        )
                    )
                )
        except SQLAlchemyError as exc:
            raise PermissionStoreError(f"revoke failed for user_id={user_id}, path={document_path}") from exc
        removed = (res.rowcount or 0) > 0
        if removed:
            logger.info("path permission revoked: user_id=%s, path=%s", user_id, document_path)
        return removed

    def _find(self, conn: Connection, user_id: int, document_path: str) -> Optional[Grant]:
        row = conn.execute(
            select(document_path_permissions).where(
                and_(
                    document_path_permissions.c.user_id == user_id,
                    document_path_permissions.c.document_path == document_path,
                )
            )
        ).mappings().first()
        return _row_to_grant(row) if row is not None else None

    def _find_all(self, conn: Connection, user_id: int) -> List[Grant]:
        rows = conn.execute(
            select(document_path_permissions).where(document_path_permissions.c.user_id == user_id)
        ).mappings().all()
        return [_row_to_grant(r) for r in rows]

    def _put(
        self,
        conn: Connection,
        user_id: int,
        document_path: str,
        level: PermissionLevel,
        collection_key: Optional[str],
        granted_by: Optional[int],
    ) -> Grant:
        # delete + insert inside the caller's transaction: last write wins per key
        conn.execute(
            delete(document_path_permissions).where(
                and_(
                    document_path_permissions.c.user_id == user_id,
                    document_path_permissions.c.document_path == document_path,
                )
            )
        )
        grant = Grant(
            user_id=user_id,
            document_path=document_path,
            level=level,
            collection_key=collection_key,
            granted_at=datetime.now(timezone.utc),
            granted_by=granted_by,
        )
        conn.execute(
            insert(document_path_permissions).values(
                user_id=grant.user_id,
                document_path=grant.document_path,
                collection_key=grant.collection_key,
                permission_level=grant.level.value,
                granted_at=grant.granted_at,
                granted_by=grant.granted_by,
            )
        )
        return grant
