"""
Database Services Package
-------------------------
Repositories and entity state machines for the marketplace.

- BaseDatabaseService: session management, validation and compare-and-swap updates
- UsersService / RefreshTokensService: accounts and refresh credentials
- ExpertApplicationsService / DocumentsService: expert onboarding
- TasksService / HelpdeskService: work items and support tickets
- NotificationsService / ActivityLogService: side-effect records
- SystemConfigService: live configuration
"""

from app.psql_db_services.base_service import BaseDatabaseService

__all__ = ["BaseDatabaseService"]
