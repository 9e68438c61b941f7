from fastapi import APIRouter, Depends

from app.api.dependencies import require_super_admin
from app.cqrs.commands import migrations
from app.models.schemas import MigrationRunResponse

router = APIRouter(prefix="/migrations", tags=["migrations"])


@router.post("/run", response_model=MigrationRunResponse, dependencies=[Depends(require_super_admin)])
def run_migrations():
    return migrations.run_migrations()
