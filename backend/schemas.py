from pydantic import BaseModel
from typing import Any, Optional, List, Union

CatalogId = Union[int, str]


class TeamResponse(BaseModel):
    team_id: CatalogId
    team_name: str
    abbreviation: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    organization: Optional[CatalogId] = None

    class Config:
        from_attributes = True


class PlayerResponse(BaseModel):
    player_id: CatalogId
    player_name: str
    first_name: str = ""
    last_name: str = ""

    class Config:
        from_attributes = True


class PlayerTeamLinkResponse(BaseModel):
    player_team_id: CatalogId
    player_id: CatalogId
    team_id: CatalogId
    player_name: str = ""
    team_name: str = ""

    class Config:
        from_attributes = True


class PlayerMatchesResponse(BaseModel):
    exact: List[PlayerResponse] = []
    fuzzy: List[PlayerResponse] = []

    class Config:
        from_attributes = True


class TeamMatchesResponse(BaseModel):
    exact: List[TeamResponse] = []
    fuzzy: List[TeamResponse] = []

    class Config:
        from_attributes = True


class LinkStatusResponse(BaseModel):
    team: TeamResponse
    linked: bool


class PlayerMentionResponse(BaseModel):
    name: str
    player_matches: PlayerMatchesResponse
    selected_player: Optional[PlayerResponse] = None
    team_names: List[str]
    team_matches: TeamMatchesResponse
    selected_teams: List[Optional[TeamResponse]]
    player_team_check_teams: TeamMatchesResponse
    player_team_matches: List[PlayerTeamLinkResponse]
    selected_player_teams: List[PlayerTeamLinkResponse]
    # Teams offered in the player-team column, with link state
    link_status: List[LinkStatusResponse] = []


class RowResponse(BaseModel):
    sort_order: int
    card_number: str
    players: List[PlayerMentionResponse]
    team_names: List[str]
    team_matches: TeamMatchesResponse
    is_rc: bool
    is_autograph: bool
    is_relic: bool
    is_short_print: bool
    print_run: Optional[int] = None
    color_id: Optional[int] = None
    notes: str = ""
    ready: bool
    reason: Optional[str] = None


class RowListResponse(BaseModel):
    rows: List[RowResponse]
    total: int


class SummaryResponse(BaseModel):
    ready_count: int
    needs_work_count: int
    first_unready: Optional[int] = None


class SessionCreate(BaseModel):
    checklist: str
    organization_id: Optional[CatalogId] = None
    auto_select: bool = True


class SessionResponse(BaseModel):
    session_id: str
    total: int
    summary: SummaryResponse


class SelectPlayerRequest(BaseModel):
    player_id: CatalogId


class SelectTeamRequest(BaseModel):
    team_id: CatalogId


class CreatePlayerRequest(BaseModel):
    # Defaults to the mention's raw name
    name: Optional[str] = None


class CreateTeamRequest(BaseModel):
    team_name: str
    team_index: int = 0
    mention_index: Optional[int] = None
    organization_id: Optional[CatalogId] = None


class CreateLinkRequest(BaseModel):
    team_id: CatalogId


class RowUpdate(BaseModel):
    card_number: Optional[str] = None
    is_rc: Optional[bool] = None
    is_autograph: Optional[bool] = None
    is_relic: Optional[bool] = None
    is_short_print: Optional[bool] = None
    print_run: Optional[Union[int, str]] = None
    color_id: Optional[Union[int, str]] = None
    notes: Optional[str] = None


class BulkUpdate(BaseModel):
    field: str
    value: Any = None
    # Flags only: set on every row unless all rows already have it
    toggle: bool = False


class LinkFailureResponse(BaseModel):
    player_id: CatalogId
    team_id: CatalogId
    error: str


class OperationResponse(BaseModel):
    updated_mentions: int
    created_links: List[PlayerTeamLinkResponse]
    failures: List[LinkFailureResponse]
    player: Optional[PlayerResponse] = None
    team: Optional[TeamResponse] = None
    summary: SummaryResponse
