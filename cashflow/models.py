# Every mapped class, imported once so string relationships resolve
from cashflow.users.models import User, Role, UserRole, PasswordResetToken  # noqa: F401
from cashflow.categories.models import Category, CategoryEmployee  # noqa: F401
from cashflow.expenses.models import Expense, Attachment, UploadToken  # noqa: F401
from cashflow.todos.models import Todo  # noqa: F401
