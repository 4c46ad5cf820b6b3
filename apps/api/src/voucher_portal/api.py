from fastapi import APIRouter

from voucher_portal.modules.scholarships.admin_router import router as admin_scholarships_router
from voucher_portal.modules.scholarships.router import router as scholarships_router
from voucher_portal.modules.signups.admin_router import router as admin_signups_router
from voucher_portal.modules.signups.router import router as signups_router
from voucher_portal.modules.vendor_submissions.admin_router import (
    router as admin_vendor_submissions_router,
)
from voucher_portal.modules.vendor_submissions.router import router as vendor_submissions_router
from voucher_portal.modules.voucher_requests.admin_router import (
    router as admin_voucher_requests_router,
)
from voucher_portal.modules.voucher_requests.router import router as voucher_requests_router
from voucher_portal.modules.vouchers.admin_router import router as admin_vouchers_router
from voucher_portal.modules.vouchers.router import router as vouchers_router
from voucher_portal.modules.vouchers.router import verify_router

api_router = APIRouter()

api_router.include_router(signups_router, prefix="/signups", tags=["Signups"])

api_router.include_router(
    scholarships_router, prefix="/scholarship-applications", tags=["Scholarship Applications"]
)

api_router.include_router(
    voucher_requests_router, prefix="/voucher-requests", tags=["Voucher Requests"]
)

api_router.include_router(verify_router, tags=["Verification"])

api_router.include_router(vouchers_router, prefix="/vouchers", tags=["Vouchers"])

api_router.include_router(vendor_submissions_router, prefix="/vendor", tags=["Vendor"])

api_router.include_router(
    admin_signups_router, prefix="/admin/signups", tags=["Admin - Signups"]
)

api_router.include_router(
    admin_scholarships_router,
    prefix="/admin/scholarship-applications",
    tags=["Admin - Scholarship Applications"],
)

api_router.include_router(
    admin_voucher_requests_router,
    prefix="/admin/voucher-requests",
    tags=["Admin - Voucher Requests"],
)

api_router.include_router(
    admin_vouchers_router, prefix="/admin/vouchers", tags=["Admin - Vouchers"]
)

api_router.include_router(
    admin_vendor_submissions_router,
    prefix="/admin/vendor-submissions",
    tags=["Admin - Vendor Submissions"],
)
