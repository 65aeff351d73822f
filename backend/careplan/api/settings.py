"""Display preference endpoints (theme and font size)."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.security import StaffSession, get_current_user
from ..services.preferences import DisplayPreferences, FontSize, PreferencesStore, Theme
from .deps import get_preferences_store

router = APIRouter(prefix="/settings", tags=["settings"])


class DisplayPreferencesUpdate(BaseModel):
    theme: Optional[Theme] = None
    font_size: Optional[FontSize] = None


@router.get("/display", response_model=DisplayPreferences)
def get_display_preferences(
    store: PreferencesStore = Depends(get_preferences_store),
    current_user: StaffSession = Depends(get_current_user),
):
    return store.current


@router.put("/display", response_model=DisplayPreferences)
def update_display_preferences(
    req: DisplayPreferencesUpdate,
    store: PreferencesStore = Depends(get_preferences_store),
    current_user: StaffSession = Depends(get_current_user),
):
    """Apply and persist any of theme / font_size; omitted fields stay as they are."""
    return store.save(theme=req.theme, font_size=req.font_size)
