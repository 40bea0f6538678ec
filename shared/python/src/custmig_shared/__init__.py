"""
custmig_shared — shared configuration, storage handles and models for custmig.

Usage:
    from custmig_shared.config import settings
    from custmig_shared.db import duckdb_connection, create_supabase_client
    from custmig_shared.models import Address, Customer, MigrationStats, DeadLetter
    from custmig_shared.constants import TABLE_CUSTOMERS, RPC_UPSERT_CUSTOMER
"""

__version__ = "0.1.0"
