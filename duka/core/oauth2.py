from fastapi.security import HTTPBearer

# Reads "Authorization: Bearer <token>"; missing headers are handled in get_current_user
bearer_scheme = HTTPBearer(auto_error=False)
