from fastapi import APIRouter, status
from invoice_marshal.modules.company import service
from invoice_marshal.modules.company.schemas import CompanyUpsert, CompanyOut
from invoice_marshal.dependencies.dbDependecies import db_dependency
from invoice_marshal.dependencies.userDependencies import user_dependency


company_router = APIRouter()

@company_router.get("", response_model=CompanyOut, status_code=status.HTTP_200_OK)
async def get_my_company(db: db_dependency, current_user: user_dependency):
    """
    Endpoint to get the company profile of the current user.
    """
    return service.get_company(db, current_user)

@company_router.put("", response_model=CompanyOut, status_code=status.HTTP_200_OK)
async def upsert_my_company(company: CompanyUpsert, db: db_dependency, current_user: user_dependency):
    """
    Endpoint to create or update the company profile of the current user.
    """
    return service.upsert_company(db, company, current_user)
