from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Optional
import logging

from checklist_import import readiness
from checklist_import.api_client import CatalogClient, CatalogService
from checklist_import.checklist import load_checklist
from checklist_import.errors import BatchLinkError, CatalogError, ErrorKind
from checklist_import.models import OperationResult, ParsedRow
from checklist_import.session import ImportSession
from schemas import (
    BulkUpdate,
    CreateLinkRequest,
    CreatePlayerRequest,
    CreateTeamRequest,
    LinkFailureResponse,
    LinkStatusResponse,
    OperationResponse,
    PlayerMentionResponse,
    PlayerResponse,
    PlayerTeamLinkResponse,
    RowListResponse,
    RowResponse,
    RowUpdate,
    SelectPlayerRequest,
    SelectTeamRequest,
    SessionCreate,
    SessionResponse,
    SummaryResponse,
    TeamResponse,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Checklist Import API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Review sessions live in process memory until deleted.
sessions: Dict[str, ImportSession] = {}

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.DUPLICATE: 400,
    ErrorKind.ALREADY_EXISTS: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NETWORK: 502,
}


def get_catalog() -> CatalogService:
    return CatalogClient.from_env()


def get_session(session_id: str) -> ImportSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Import session not found")
    return session


def catalog_http_error(error: CatalogError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(error.kind, 400),
        detail={"kind": error.kind.value, "message": error.message},
    )


def row_response(row: ParsedRow) -> RowResponse:
    status = readiness.evaluate(row)
    players = []
    for mention in row.players:
        data = PlayerMentionResponse.model_validate(
            {
                "name": mention.name,
                "player_matches": mention.player_matches,
                "selected_player": mention.selected_player,
                "team_names": mention.team_names,
                "team_matches": mention.team_matches,
                "selected_teams": mention.selected_teams,
                "player_team_check_teams": mention.player_team_check_teams,
                "player_team_matches": mention.player_team_matches,
                "selected_player_teams": mention.selected_player_teams,
                "link_status": [
                    LinkStatusResponse(team=TeamResponse.model_validate(team), linked=linked)
                    for team, linked in readiness.link_status(mention, row)
                ],
            },
            from_attributes=True,
        )
        players.append(data)

    return RowResponse.model_validate(
        {
            "sort_order": row.sort_order,
            "card_number": row.card_number,
            "players": players,
            "team_names": row.team_names,
            "team_matches": row.team_matches,
            "is_rc": row.is_rc,
            "is_autograph": row.is_autograph,
            "is_relic": row.is_relic,
            "is_short_print": row.is_short_print,
            "print_run": row.print_run,
            "color_id": row.color_id,
            "notes": row.notes,
            "ready": status.ready,
            "reason": status.reason,
        },
        from_attributes=True,
    )


def summary_response(session: ImportSession) -> SummaryResponse:
    summary = session.summarize()
    return SummaryResponse(
        ready_count=summary.ready_count,
        needs_work_count=summary.needs_work_count,
        first_unready=session.first_unready(),
    )


def operation_response(session: ImportSession, result: OperationResult) -> OperationResponse:
    return OperationResponse(
        updated_mentions=result.updated_mentions,
        created_links=[PlayerTeamLinkResponse.model_validate(link) for link in result.created_links],
        failures=[
            LinkFailureResponse(player_id=f.player_id, team_id=f.team_id, error=str(f.error))
            for f in result.failures
        ],
        player=PlayerResponse.model_validate(result.player) if result.player else None,
        team=TeamResponse.model_validate(result.team) if result.team else None,
        summary=summary_response(session),
    )


async def run_operation(session: ImportSession, operation) -> OperationResponse:
    """Await a reconciler action and map its errors onto HTTP responses.

    A partially failed batch is still a 200; its failures are listed in the body.
    """
    try:
        result = await operation
    except BatchLinkError as e:
        logger.warning(f"Session {session.session_id}: {e.message}")
        result = e.result or OperationResult(failures=e.failures)
    except CatalogError as e:
        raise catalog_http_error(e) from e
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]) if e.args else "Row not found") from e
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return operation_response(session, result)


@app.post("/api/import/sessions", response_model=SessionResponse)
async def create_session(
    body: SessionCreate,
    catalog: CatalogService = Depends(get_catalog),
):
    try:
        cards = load_checklist(body.checklist)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        session = await ImportSession.from_checklist(
            cards, catalog, organization_id=body.organization_id, auto_select=body.auto_select
        )
    except CatalogError as e:
        raise catalog_http_error(e) from e

    sessions[session.session_id] = session
    logger.info(f"Opened import session {session.session_id} with {len(cards)} cards")
    return SessionResponse(
        session_id=session.session_id,
        total=len(session.rows),
        summary=summary_response(session),
    )


@app.get("/api/import/sessions/{session_id}/rows", response_model=RowListResponse)
def get_rows(
    q: Optional[str] = None,
    sort: str = Query("sort_order"),
    direction: str = Query("asc", pattern="^(asc|desc)$"),
    session: ImportSession = Depends(get_session),
):
    try:
        rows = session.view(q or "", sort, direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return RowListResponse(rows=[row_response(row) for row in rows], total=len(rows))


@app.get("/api/import/sessions/{session_id}/summary", response_model=SummaryResponse)
def get_summary(session: ImportSession = Depends(get_session)):
    return summary_response(session)


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/players/{mention_index}/select",
    response_model=OperationResponse,
)
async def select_player(
    sort_order: int,
    mention_index: int,
    body: SelectPlayerRequest,
    session: ImportSession = Depends(get_session),
):
    return await run_operation(
        session, session.reconciler.select_player(sort_order, mention_index, body.player_id)
    )


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/players/{mention_index}/create",
    response_model=OperationResponse,
)
async def create_player(
    sort_order: int,
    mention_index: int,
    body: CreatePlayerRequest,
    session: ImportSession = Depends(get_session),
):
    name = body.name
    if name is None:
        try:
            name = session.working_set.get(sort_order).players[mention_index].name
        except (KeyError, IndexError) as e:
            raise HTTPException(status_code=404, detail="Player mention not found") from e
    return await run_operation(
        session, session.reconciler.create_player(sort_order, mention_index, name)
    )


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/teams/create",
    response_model=OperationResponse,
)
async def create_team(
    sort_order: int,
    body: CreateTeamRequest,
    session: ImportSession = Depends(get_session),
):
    return await run_operation(
        session,
        session.reconciler.create_team(
            sort_order,
            body.mention_index,
            body.team_index,
            body.team_name,
            organization_id=body.organization_id,
        ),
    )


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/players/{mention_index}/teams/{team_index}/select",
    response_model=OperationResponse,
)
async def select_team(
    sort_order: int,
    mention_index: int,
    team_index: int,
    body: SelectTeamRequest,
    session: ImportSession = Depends(get_session),
):
    return await run_operation(
        session, session.reconciler.select_team(sort_order, mention_index, team_index, body.team_id)
    )


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/teams/{team_index}/promote",
    response_model=OperationResponse,
)
async def promote_team(
    sort_order: int,
    team_index: int,
    body: SelectTeamRequest,
    session: ImportSession = Depends(get_session),
):
    return await run_operation(
        session, session.reconciler.promote_fuzzy_team(sort_order, team_index, body.team_id)
    )


@app.post(
    "/api/import/sessions/{session_id}/rows/{sort_order}/players/{mention_index}/links",
    response_model=OperationResponse,
)
async def create_player_team(
    sort_order: int,
    mention_index: int,
    body: CreateLinkRequest,
    session: ImportSession = Depends(get_session),
):
    return await run_operation(
        session, session.reconciler.create_player_team(sort_order, mention_index, body.team_id)
    )


@app.patch("/api/import/sessions/{session_id}/rows/{sort_order}", response_model=RowResponse)
def update_row(
    sort_order: int,
    body: RowUpdate,
    session: ImportSession = Depends(get_session),
):
    try:
        row = session.working_set.get(sort_order)
        for field_name, value in body.model_dump(exclude_unset=True).items():
            row = session.reconciler.set_field(sort_order, field_name, value)
    except KeyError as e:
        raise HTTPException(status_code=404, detail="Row not found") from e
    return row_response(row)


@app.post("/api/import/sessions/{session_id}/bulk", response_model=SummaryResponse)
def bulk_update(
    body: BulkUpdate,
    session: ImportSession = Depends(get_session),
):
    try:
        if body.toggle:
            session.working_set.toggle_all_flag(body.field)
        else:
            session.reconciler.bulk_set_field(body.field, body.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return summary_response(session)


@app.delete("/api/import/sessions/{session_id}")
def delete_session(session: ImportSession = Depends(get_session)):
    session.close()
    sessions.pop(session.session_id, None)
    return {"message": "Import session closed"}
