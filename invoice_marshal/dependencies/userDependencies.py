from typing import Annotated
from fastapi import Depends
from invoice_marshal.modules.auth.utils import get_current_user
from invoice_marshal.modules.auth.models import User

user_dependency = Annotated[User, Depends(get_current_user)]
