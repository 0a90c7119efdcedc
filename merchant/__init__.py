"""
Merchant order reconciliation package.

Provides:
- Configuration & endpoints for the merchant platform API
- Core domain enums & models (events, order records, credentials)
- Stores for orders and applied event ids
- Services for credentials, the remote gateway, event projection and polling
- Application-level OrderAPI and the FastAPI control surface for operators
"""
