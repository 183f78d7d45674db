from fastapi import HTTPException, status
from typing import Optional
from uuid import UUID
import logging

from invoice_marshal.dependencies.dbDependecies import db_dependency
from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.company.models import Company
from invoice_marshal.modules.company.schemas import CompanyUpsert

logger = logging.getLogger(__name__)


def get_company_for_user(db: db_dependency, user_id: UUID) -> Optional[Company]:
    """
    Return the company profile owned by the user, or None if it has not been set up.
    """
    return db.query(Company).filter(Company.user_id == user_id).first()


def get_company(db: db_dependency, current_user: User) -> Company:
    company = get_company_for_user(db, current_user.id)
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


def upsert_company(db: db_dependency, company_data: CompanyUpsert, current_user: User) -> Company:
    """
    Create or update the company profile of the current user.
    A user owns at most one company; its identity overrides the
    "from" fields of invoices in PDFs and emails.

    Args:
        company_data (CompanyUpsert): The company data.
        current_user (User): The owner of the company.

    Returns:
        Company: The created or updated company.
    """
    try:
        company = get_company_for_user(db, current_user.id)
        if company is None:
            company = Company(user_id=current_user.id, **company_data.model_dump())
            db.add(company)
            logger.info(f"Company created for user {current_user.id}")
        else:
            for field, value in company_data.model_dump().items():
                setattr(company, field, value)
            logger.info(f"Company {company.id} updated")

        db.commit()
        db.refresh(company)
        return company
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving company for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error saving company")
