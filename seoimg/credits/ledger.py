"""Per-account credit ledger: Postgres (preferred) or file-based fallback."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from seoimg.config import get_settings
from seoimg.schemas.models import CreditAccount, CreditTransaction, TemplateType, utcnow

logger = logging.getLogger(__name__)

WELCOME_DESCRIPTION = "Welcome bonus - {amount} free credits"


def usage_description(template_type: TemplateType | None, amount: int) -> str:
    if template_type is TemplateType.BLOG:
        return f"Generated blog featured image ({amount} credits)"
    if template_type is TemplateType.INFOGRAPHIC:
        return f"Generated infographic image ({amount} credits)"
    return "Credit usage"


class CreditLedger(Protocol):
    def get_account(self, account_id: str) -> CreditAccount: ...
    def get_balance(self, account_id: str) -> int: ...
    def debit(
        self,
        account_id: str,
        amount: int,
        reason: str | None = None,
        template_type: TemplateType | None = None,
    ) -> bool: ...
    def add_credits(self, account_id: str, amount: int, description: str = "Credits added") -> int: ...
    def set_balance(self, account_id: str, new_balance: int, reason: str = "Admin credit adjustment") -> int: ...
    def list_accounts(self) -> list[CreditAccount]: ...
    def transactions(self, account_id: str) -> list[CreditTransaction]: ...


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

class PostgresCreditLedger:
    """Balances and transactions in Postgres. Debits are a single conditional UPDATE."""

    def __init__(self, database_url: str, welcome_credits: int = 50):
        self._url = database_url
        self._welcome = welcome_credits
        self._conn = self._connect()

    def _connect(self):
        try:
            import psycopg
            conn = psycopg.connect(self._url, autocommit=True)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS seoimg_accounts (
                    account_id TEXT PRIMARY KEY,
                    balance INT NOT NULL DEFAULT 0 CHECK (balance >= 0),
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS seoimg_credit_transactions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL REFERENCES seoimg_accounts(account_id),
                    amount INT NOT NULL,
                    kind TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    template_type TEXT,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_seoimg_credit_transactions_account
                ON seoimg_credit_transactions (account_id, created_at DESC)
            """)
            return conn
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres credit ledger. pip install 'psycopg[binary]'"
            )

    def _record(self, txn: CreditTransaction) -> None:
        self._conn.execute(
            """
            INSERT INTO seoimg_credit_transactions
            (id, account_id, amount, kind, description, template_type, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, NOW())
            """,
            (
                txn.id,
                txn.account_id,
                txn.amount,
                txn.kind,
                txn.description,
                txn.template_type.value if txn.template_type else None,
            ),
        )

    def get_account(self, account_id: str) -> CreditAccount:
        row = self._conn.execute(
            "SELECT account_id, balance, created_at, updated_at FROM seoimg_accounts WHERE account_id = %s",
            (account_id,),
        ).fetchone()
        if row:
            return CreditAccount(account_id=row[0], balance=row[1], created_at=row[2], updated_at=row[3])
        with self._conn.transaction():
            self._conn.execute(
                "INSERT INTO seoimg_accounts (account_id, balance) VALUES (%s, %s) ON CONFLICT DO NOTHING",
                (account_id, self._welcome),
            )
            self._record(CreditTransaction(
                account_id=account_id,
                amount=self._welcome,
                kind="bonus",
                description=WELCOME_DESCRIPTION.format(amount=self._welcome),
            ))
        logger.info("Opened credit account %s with %d credits", account_id, self._welcome)
        return self.get_account(account_id)

    def get_balance(self, account_id: str) -> int:
        return self.get_account(account_id).balance

    def debit(
        self,
        account_id: str,
        amount: int,
        reason: str | None = None,
        template_type: TemplateType | None = None,
    ) -> bool:
        if amount <= 0:
            raise ValueError("debit amount must be positive")
        self.get_account(account_id)
        with self._conn.transaction():
            row = self._conn.execute(
                """
                UPDATE seoimg_accounts SET balance = balance - %s, updated_at = NOW()
                WHERE account_id = %s AND balance >= %s
                RETURNING balance
                """,
                (amount, account_id, amount),
            ).fetchone()
            if not row:
                return False
            self._record(CreditTransaction(
                account_id=account_id,
                amount=-amount,
                kind="usage",
                description=reason or usage_description(template_type, amount),
                template_type=template_type,
            ))
        return True

    def add_credits(self, account_id: str, amount: int, description: str = "Credits added") -> int:
        if amount <= 0:
            raise ValueError("credit amount must be positive")
        self.get_account(account_id)
        with self._conn.transaction():
            row = self._conn.execute(
                """
                UPDATE seoimg_accounts SET balance = balance + %s, updated_at = NOW()
                WHERE account_id = %s RETURNING balance
                """,
                (amount, account_id),
            ).fetchone()
            self._record(CreditTransaction(
                account_id=account_id, amount=amount, kind="purchase", description=description,
            ))
        return row[0]

    def set_balance(self, account_id: str, new_balance: int, reason: str = "Admin credit adjustment") -> int:
        if new_balance < 0:
            raise ValueError("balance cannot be negative")
        old = self.get_balance(account_id)
        with self._conn.transaction():
            self._conn.execute(
                "UPDATE seoimg_accounts SET balance = %s, updated_at = NOW() WHERE account_id = %s",
                (new_balance, account_id),
            )
            self._record(CreditTransaction(
                account_id=account_id, amount=new_balance - old, kind="admin_adjustment", description=reason,
            ))
        return new_balance

    def list_accounts(self) -> list[CreditAccount]:
        rows = self._conn.execute(
            "SELECT account_id, balance, created_at, updated_at FROM seoimg_accounts ORDER BY created_at DESC"
        ).fetchall()
        return [
            CreditAccount(account_id=r[0], balance=r[1], created_at=r[2], updated_at=r[3]) for r in rows
        ]

    def transactions(self, account_id: str) -> list[CreditTransaction]:
        rows = self._conn.execute(
            """
            SELECT id, account_id, amount, kind, description, template_type, created_at
            FROM seoimg_credit_transactions WHERE account_id = %s ORDER BY created_at DESC
            """,
            (account_id,),
        ).fetchall()
        return [
            CreditTransaction(
                id=r[0], account_id=r[1], amount=r[2], kind=r[3], description=r[4],
                template_type=TemplateType(r[5]) if r[5] else None, created_at=r[6],
            )
            for r in rows
        ]


# ---------------------------------------------------------------------------
# File-based implementation (fallback when no Postgres)
# ---------------------------------------------------------------------------

class FileCreditLedger:
    """Balances in accounts.json, history in transactions.jsonl. One lock guards each mutation."""

    def __init__(self, data_dir: Path, welcome_credits: int = 50):
        self._dir = Path(data_dir) / "credits"
        self._dir.mkdir(parents=True, exist_ok=True)
        self._accounts_path = self._dir / "accounts.json"
        self._txn_path = self._dir / "transactions.jsonl"
        self._welcome = welcome_credits
        self._lock = threading.Lock()

    def _load(self) -> dict[str, CreditAccount]:
        if not self._accounts_path.exists():
            return {}
        with open(self._accounts_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return {k: CreditAccount.model_validate(v) for k, v in data.items()}

    def _save(self, accounts: dict[str, CreditAccount]) -> None:
        tmp = self._accounts_path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({k: v.model_dump(mode="json") for k, v in accounts.items()}, f, indent=2)
        tmp.replace(self._accounts_path)

    def _record(self, txn: CreditTransaction) -> None:
        with open(self._txn_path, "a", encoding="utf-8") as f:
            f.write(txn.model_dump_json() + "\n")

    def _ensure(self, accounts: dict[str, CreditAccount], account_id: str) -> CreditAccount:
        account = accounts.get(account_id)
        if account is None:
            account = CreditAccount(account_id=account_id, balance=self._welcome)
            accounts[account_id] = account
            self._save(accounts)
            self._record(CreditTransaction(
                account_id=account_id,
                amount=self._welcome,
                kind="bonus",
                description=WELCOME_DESCRIPTION.format(amount=self._welcome),
            ))
            logger.info("Opened credit account %s with %d credits", account_id, self._welcome)
        return account

    def get_account(self, account_id: str) -> CreditAccount:
        with self._lock:
            return self._ensure(self._load(), account_id).model_copy()

    def get_balance(self, account_id: str) -> int:
        return self.get_account(account_id).balance

    def debit(
        self,
        account_id: str,
        amount: int,
        reason: str | None = None,
        template_type: TemplateType | None = None,
    ) -> bool:
        if amount <= 0:
            raise ValueError("debit amount must be positive")
        with self._lock:
            accounts = self._load()
            account = self._ensure(accounts, account_id)
            if account.balance < amount:
                logger.info("Debit of %d refused for %s (balance %d)", amount, account_id, account.balance)
                return False
            account.balance -= amount
            account.updated_at = utcnow()
            self._save(accounts)
            self._record(CreditTransaction(
                account_id=account_id,
                amount=-amount,
                kind="usage",
                description=reason or usage_description(template_type, amount),
                template_type=template_type,
            ))
        return True

    def add_credits(self, account_id: str, amount: int, description: str = "Credits added") -> int:
        if amount <= 0:
            raise ValueError("credit amount must be positive")
        with self._lock:
            accounts = self._load()
            account = self._ensure(accounts, account_id)
            account.balance += amount
            account.updated_at = utcnow()
            self._save(accounts)
            self._record(CreditTransaction(
                account_id=account_id, amount=amount, kind="purchase", description=description,
            ))
            return account.balance

    def set_balance(self, account_id: str, new_balance: int, reason: str = "Admin credit adjustment") -> int:
        if new_balance < 0:
            raise ValueError("balance cannot be negative")
        with self._lock:
            accounts = self._load()
            account = self._ensure(accounts, account_id)
            delta = new_balance - account.balance
            account.balance = new_balance
            account.updated_at = utcnow()
            self._save(accounts)
            self._record(CreditTransaction(
                account_id=account_id, amount=delta, kind="admin_adjustment", description=reason,
            ))
            return new_balance

    def list_accounts(self) -> list[CreditAccount]:
        with self._lock:
            accounts = list(self._load().values())
        return sorted(accounts, key=lambda a: a.created_at, reverse=True)

    def transactions(self, account_id: str) -> list[CreditTransaction]:
        if not self._txn_path.exists():
            return []
        out: list[CreditTransaction] = []
        with open(self._txn_path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                txn = CreditTransaction.model_validate_json(line)
                if txn.account_id == account_id:
                    out.append(txn)
        out.reverse()
        return out


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_ledger: CreditLedger | None = None


def get_credit_ledger() -> CreditLedger:
    """Return singleton ledger (Postgres if configured, else file-based)."""
    global _ledger
    if _ledger is not None:
        return _ledger
    settings = get_settings()
    if settings.seoimg_database_url:
        try:
            _ledger = PostgresCreditLedger(settings.seoimg_database_url, settings.seoimg_welcome_credits)
            logger.info("Using Postgres credit ledger")
        except Exception as e:
            logger.warning("Postgres credit ledger failed (%s), falling back to file ledger", e)
            _ledger = FileCreditLedger(settings.data_dir, settings.seoimg_welcome_credits)
    else:
        _ledger = FileCreditLedger(settings.data_dir, settings.seoimg_welcome_credits)
        logger.info("Using file-based credit ledger (SEOIMG_DATA_DIR/credits)")
    return _ledger
