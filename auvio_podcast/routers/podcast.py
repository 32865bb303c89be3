from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
import hashlib
import html
import json
import logging

from auvio_podcast.providers.program import ProgramPipeline
from auvio_podcast.schemas.auvio import Program
from auvio_podcast.utils.podcast_feed import build_podcast_xml
from auvio_podcast.utils.programs_loader import get_featured_programs

router = APIRouter()
logger = logging.getLogger(__name__)


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head>"
        f"<meta charset=\"utf-8\"><title>{html.escape(title)}</title>"
        f"</head><body>{body}</body></html>"
    )


def compute_etag(body: bytes) -> str:
    return f'"{hashlib.sha1(body).hexdigest()}"'


def etag_matches(if_none_match: str, etag: str) -> bool:
    """Weak comparison against an If-None-Match header value"""
    if not if_none_match:
        return False
    candidates = [value.strip() for value in if_none_match.split(",")]
    if "*" in candidates:
        return True
    return etag in [value[2:] if value.startswith("W/") else value for value in candidates]


def conditional_response(request: Request, body: bytes, media_type: str) -> Response:
    """Tag the body with an ETag and answer 304 when the client already has it"""
    etag = compute_etag(body)
    if etag_matches(request.headers.get("if-none-match", ""), etag):
        logger.info(f"♻️ Not modified: {request.url.path}")
        return Response(status_code=304, headers={"ETag": etag})
    return Response(content=body, media_type=media_type, headers={"ETag": etag})


async def _get_program(request: Request, slug: str) -> Program:
    """Run the blocking pipeline in the threadpool so requests proceed in parallel"""
    pipeline: ProgramPipeline = request.app.state.pipeline
    path = f"/emission/{slug}"
    logger.info(f"📻 Building program {path}")
    return await run_in_threadpool(pipeline.get_program, path)


@router.get("/")
async def index(request: Request):
    items = "".join(
        f"<li><a href=\"{html.escape(program['path'])}\">{html.escape(program['name'])}</a></li>"
        for program in get_featured_programs()
    )
    page = _layout("Auvio Podcasts", f"<h1>Auvio podcasts</h1><ul>{items}</ul>")
    return conditional_response(request, page.encode("utf-8"), "text/html; charset=utf-8")


@router.get("/emission/{slug}/podcast.xml")
async def program_podcast(slug: str, request: Request):
    program = await _get_program(request, slug)
    xml = build_podcast_xml(program, request.app.state.settings.base_url)
    logger.info(f"✅ Podcast feed for {program.path}: {len(program.episodes)} episodes")
    return conditional_response(request, xml, "application/xml")


@router.get("/emission/{slug}.json")
async def program_json(slug: str, request: Request):
    program = await _get_program(request, slug)
    body = json.dumps(program.model_dump(mode="json"), ensure_ascii=False).encode("utf-8")
    return conditional_response(request, body, "application/json")


@router.get("/emission/{slug}")
async def program_page(slug: str, request: Request):
    program = await _get_program(request, slug)
    path = html.escape(program.path or f"/emission/{slug}")
    body = (
        f"<h1>{html.escape(program.title)}</h1>"
        f"<p>{html.escape(program.description or '')}</p>"
        f"<p><a href=\"{path}/podcast.xml\">Podcast</a></p>"
    )
    return conditional_response(request, _layout(program.title, body).encode("utf-8"), "text/html; charset=utf-8")
