from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from precast.schemas.maintenance import ProjectStatus
from precast.db.models.project import Project as DBProject
from precast.api.deps import get_db

router = APIRouter()


@router.get("/{project_id}/status", response_model=ProjectStatus)
def get_project_status(
    project_id: int,
    db: Session = Depends(get_db)
):
    """Subscription and suspension state of a project"""
    project = db.query(DBProject).filter(DBProject.project_id == project_id).first()
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    return project
