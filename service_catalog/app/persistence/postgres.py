"""
PostgreSQL persistence layer for the Catalog Service.
"""

import json
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import asyncpg

from shared.errors import StoreError
from shared.logging import get_logger
from ..interfaces import FoodFilter
from ..models import Category, Food


FOOD_SELECT = """
    SELECT f.id, f.name, f.description, f.price, f.images, f.category_id,
           f.food_type, f.created_at, f.updated_at,
           c.name AS category_name, c.description AS category_description
    FROM foods f
    LEFT JOIN categories c ON c.id = f.category_id
"""

# Columns a partial update may touch
UPDATABLE_COLUMNS = ("name", "description", "price", "images", "category_id", "food_type")


async def _init_connection(conn: asyncpg.Connection):
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog"
    )


class PostgreSQLCatalogStore:
    """PostgreSQL store for foods and categories.

    Reads join each food's category so callers receive it embedded. Any
    driver or connection error is raised as ``StoreError``.
    """

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("catalog.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30,
                init=_init_connection
            )
            await self._create_tables()
            self.logger.info("PostgreSQL persistence started")

        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreError(str(e), {"operation": "start"})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    @asynccontextmanager
    async def _connection(self, operation: str) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection, translating driver errors to StoreError."""
        if self.pool is None:
            raise StoreError("Persistent store is not started", {"operation": operation})
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self.logger.error("Store operation failed", operation=operation, error=str(e))
            raise StoreError(str(e), {"operation": operation})

    async def _create_tables(self):
        """Create database tables."""
        async with self._connection("create_tables") as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL UNIQUE,
                    description TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS foods (
                    id VARCHAR(64) PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    description TEXT,
                    price DOUBLE PRECISION NOT NULL,
                    images JSONB NOT NULL DEFAULT '[]',
                    category_id VARCHAR(64) REFERENCES categories(id),
                    food_type VARCHAR(100),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_foods_category ON foods(category_id);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_foods_price ON foods(price);
            """)

    async def find_all(self) -> List[Food]:
        """Load every food."""
        async with self._connection("find_all") as conn:
            rows = await conn.fetch(FOOD_SELECT + " ORDER BY f.created_at ASC, f.id ASC")
            return [self._row_to_food(row) for row in rows]

    async def find_filtered(self, food_filter: FoodFilter) -> List[Food]:
        """Load foods matching a filter."""
        where, args = self._build_where(food_filter)
        sql = FOOD_SELECT
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY f.created_at ASC, f.id ASC"

        async with self._connection("find_filtered") as conn:
            rows = await conn.fetch(sql, *args)
            return [self._row_to_food(row) for row in rows]

    async def find_by_id(self, food_id: str) -> Optional[Food]:
        """Load a single food."""
        async with self._connection("find_by_id") as conn:
            row = await conn.fetchrow(FOOD_SELECT + " WHERE f.id = $1", food_id)
            return self._row_to_food(row) if row else None

    async def insert(self, food: Food) -> Food:
        """Insert a food and return it with its category joined."""
        async with self._connection("insert") as conn:
            await conn.execute("""
                INSERT INTO foods (
                    id, name, description, price, images, category_id,
                    food_type, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            """,
                food.id, food.name, food.description, food.price, food.images,
                food.category_id, food.food_type, food.created_at, food.updated_at
            )
            row = await conn.fetchrow(FOOD_SELECT + " WHERE f.id = $1", food.id)

        self.logger.info("Food saved", food_id=food.id, name=food.name)
        return self._row_to_food(row)

    async def update_by_id(self, food_id: str, patch: Dict[str, Any]) -> Optional[Food]:
        """Apply a partial update; returns None when the food does not exist."""
        assignments = []
        args: List[Any] = [food_id]
        for column in UPDATABLE_COLUMNS:
            if column in patch:
                args.append(patch[column])
                assignments.append(f"{column} = ${len(args)}")
        assignments.append("updated_at = NOW()")

        async with self._connection("update_by_id") as conn:
            updated = await conn.fetchval(
                f"UPDATE foods SET {', '.join(assignments)} WHERE id = $1 RETURNING id",
                *args
            )
            if updated is None:
                return None
            row = await conn.fetchrow(FOOD_SELECT + " WHERE f.id = $1", food_id)

        self.logger.info("Food updated", food_id=food_id, fields=sorted(patch))
        return self._row_to_food(row)

    async def delete_by_id(self, food_id: str) -> Optional[Food]:
        """Delete a food; returns the removed food or None when absent."""
        async with self._connection("delete_by_id") as conn:
            row = await conn.fetchrow("""
                WITH deleted AS (
                    DELETE FROM foods WHERE id = $1 RETURNING *
                )
                SELECT d.id, d.name, d.description, d.price, d.images, d.category_id,
                       d.food_type, d.created_at, d.updated_at,
                       c.name AS category_name, c.description AS category_description
                FROM deleted d
                LEFT JOIN categories c ON c.id = d.category_id
            """, food_id)

        if not row:
            self.logger.warning("Food not found for deletion", food_id=food_id)
            return None

        self.logger.info("Food deleted", food_id=food_id)
        return self._row_to_food(row)

    async def find_category_by_name(self, name: str) -> Optional[Category]:
        """Resolve a category by its exact name."""
        async with self._connection("find_category_by_name") as conn:
            row = await conn.fetchrow(
                "SELECT id, name, description FROM categories WHERE name = $1", name
            )
            return Category(**dict(row)) if row else None

    async def list_categories(self) -> List[Category]:
        """Load every category."""
        async with self._connection("list_categories") as conn:
            rows = await conn.fetch("SELECT id, name, description FROM categories ORDER BY name")
            return [Category(**dict(row)) for row in rows]

    async def insert_category(self, name: str, description: Optional[str] = None) -> Category:
        """Create a category."""
        category = Category(id=uuid.uuid4().hex, name=name, description=description)
        async with self._connection("insert_category") as conn:
            await conn.execute(
                "INSERT INTO categories (id, name, description) VALUES ($1, $2, $3)",
                category.id, category.name, category.description
            )

        self.logger.info("Category saved", category_id=category.id, name=name)
        return category

    @staticmethod
    def _build_where(food_filter: FoodFilter) -> Tuple[List[str], List[Any]]:
        """Translate a FoodFilter into SQL predicates and positional args."""
        where: List[str] = []
        args: List[Any] = []

        if food_filter.category_id is not None:
            args.append(food_filter.category_id)
            where.append(f"f.category_id = ${len(args)}")
        if food_filter.name_pattern is not None:
            args.append(food_filter.name_pattern)
            where.append(f"f.name ~* ${len(args)}")
        if food_filter.min_price is not None:
            args.append(food_filter.min_price)
            where.append(f"f.price >= ${len(args)}")
        if food_filter.max_price is not None:
            args.append(food_filter.max_price)
            where.append(f"f.price <= ${len(args)}")

        return where, args

    @staticmethod
    def _row_to_food(row) -> Food:
        """Convert a joined database row to a Food."""
        category = None
        if row["category_id"] is not None and row["category_name"] is not None:
            category = Category(
                id=row["category_id"],
                name=row["category_name"],
                description=row["category_description"]
            )

        return Food(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            price=row["price"],
            images=row["images"] or [],
            category_id=row["category_id"],
            category=category,
            food_type=row["food_type"],
            created_at=row["created_at"],
            updated_at=row["updated_at"]
        )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._connection("health_check") as conn:
                await conn.fetchval("SELECT 1")
                return True
        except StoreError:
            return False
