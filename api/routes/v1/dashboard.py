"""
api/routes/v1/dashboard.py -- Aggregated inventory metrics.

Returns a single payload suitable for driving dashboard widgets:
  - Total product and account counts
  - Product count per product type, shaped as chart points {label, value}

This is a read-only aggregate route -- no mutations here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import ChartPoint, DashboardResponse
from auth.dependencies import AccessGate
from auth.models import Role
from auth.store import AccountStore
from inventory.store import InventoryStore

# Auth policy:
# - GET /api/v1/dashboard: ADMIN, EDITOR, VIEWER
# Router-level dependency enforces the gate; the single handler does not repeat it.
router = APIRouter(dependencies=[Depends(AccessGate(Role.ADMIN, Role.EDITOR, Role.VIEWER))])


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(request: Request) -> DashboardResponse:
    """Return inventory totals and the per-type breakdown.

    Response:
      totalProducts -- number of products
      totalUsers    -- number of accounts
      chartData     -- [{"label": <type name>, "value": <product count>}], one per type
    """
    inventory: InventoryStore = request.app.state.inventory
    accounts: AccountStore = request.app.state.account_store

    chart = [ChartPoint(label=name, value=count) for name, count in inventory.product_counts_by_type()]
    return DashboardResponse(
        total_products=inventory.count_products(),
        total_users=accounts.count_accounts(),
        chart_data=chart,
    )
