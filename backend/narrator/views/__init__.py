from narrator.views.auth_handlers import (
    login as login,
)
from narrator.views.auth_handlers import (
    logout as logout,
)
from narrator.views.auth_handlers import (
    register as register,
)
from narrator.views.handlers import current_user as current_user
