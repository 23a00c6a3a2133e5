from .check import handle_check
from .explain import handle_explain
