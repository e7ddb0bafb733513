import os
import time
import signal
import asyncio
from datetime import datetime
from typing import Optional, List, Dict, Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ConfigDict
from pydantic_settings import BaseSettings
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

load_dotenv()

from studyaid.highlight import (
    KeywordEntry,
    Segment,
    SelectionState,
    AnchorPosition,
    match_keywords,
    segment_stats,
    find_segment,
    render_segments_html,
    render_tooltip_html,
)
from studyaid.semantic import (
    KeywordExtractor,
    extract_keywords,
    CacheManager,
    KeywordExtractorError,
    KeywordInputError,
    KeywordAPIError,
    KeywordValidationError,
    KeywordTimeoutError,
)
from studyaid.flashcards import (
    FlashcardGenerator,
    generate_flashcards,
    FlashcardGeneratorError,
    FlashcardInputError,
    FlashcardAPIError,
    FlashcardValidationError,
    FlashcardTimeoutError,
)
from studyaid.storage import Database, StorageError, get_database
from studyaid.auth import current_user, router as auth_router
from studyaid.utils import get_logger, set_request_context, log_request, log_error, log_keyword_extraction, log_highlight

LOG = get_logger()


class Settings(BaseSettings):
    HOST: str = '0.0.0.0'
    PORT: int = 8000
    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGIN: str = 'http://localhost:5173'
    SESSION_SECRET: str = 'change-me-in-production'
    SESSION_MAX_AGE: int = 7 * 24 * 60 * 60
    REDIS_REQUIRED_FOR_READY: bool = False
    OPENAI_REQUIRED_FOR_READY: bool = False


settings = Settings()

app = FastAPI(title='Study Aid Service', version='1.0.0', description='Keyword highlighting, AI keyword extraction and flashcards for study material')

origins = [o.strip() for o in settings.CORS_ORIGIN.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    max_age=settings.SESSION_MAX_AGE,
    same_site='none' if settings.ENVIRONMENT == 'production' else 'lax',
    https_only=settings.ENVIRONMENT == 'production',
)
app.include_router(auth_router)


@app.middleware('http')
async def add_request_id_and_logging(request: Request, call_next):
    # prefer incoming X-Request-ID header for cross-service tracing
    request_id = request.headers.get('x-request-id') or os.urandom(8).hex()
    request.state.request_id = request_id
    set_request_context(request_id)
    start = time.time()
    LOG.info('http_request_start', extra={'method': request.method, 'path': request.url.path, 'request_id': request_id, 'client': request.client.host if request.client else None})
    try:
        response: Response = await call_next(request)
    except Exception as e:
        log_error(e, {'request_id': request_id, 'method': request.method, 'path': request.url.path})
        return JSONResponse(status_code=500, content={'success': False, 'error': 'Internal server error', 'request_id': request_id})
    duration = int((time.time() - start) * 1000)
    log_request(request_id, request.method, request.url.path, response.status_code, duration, ip=request.client.host if request.client else None)
    response.headers['X-Request-ID'] = request_id
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, 'request_id', None) or os.urandom(8).hex()


def _error(status_code: int, error: str, request_id: str, details: Any = None) -> JSONResponse:
    content = {'success': False, 'error': error, 'request_id': request_id}
    if details is not None:
        content['details'] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), _request_id(request))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error(422, 'Validation error', _request_id(request), jsonable_encoder(exc.errors()))


@app.get('/health')
async def health():
    return {'status': 'ok', 'timestamp': datetime.utcnow().isoformat() + 'Z', 'service': 'study-aid'}


def _check_openai():
    try:
        key = os.getenv('OPENAI_API_KEY')
        if not key:
            if settings.OPENAI_REQUIRED_FOR_READY:
                return 'error: no openai key'
            return 'warn: no openai key'
        import requests
        resp = requests.get('https://api.openai.com/v1/models', headers={'Authorization': f'Bearer {key}'}, timeout=5)
        if resp.status_code == 200:
            return 'ok'
        return f'error: openai status {resp.status_code}'
    except Exception as e:
        return f'error: {str(e)}'


@app.get('/ready')
async def ready(db: Database = Depends(get_database)):
    services = {
        'database': db.health_check(),
        'redis': CacheManager.get_instance().health_check(),
        'openai': _check_openai(),
    }

    ready_ok = True
    if services['database'].startswith('error'):
        ready_ok = False
    if settings.REDIS_REQUIRED_FOR_READY and services['redis'] != 'ok':
        ready_ok = False
    if settings.OPENAI_REQUIRED_FOR_READY and services['openai'].startswith('error'):
        ready_ok = False

    status_code = 200 if ready_ok else 503
    return JSONResponse(status_code=status_code, content={'status': 'ready' if ready_ok else 'not ready', 'services': services})


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., description='Study material text to analyze')
    study_material_id: Optional[int] = Field(None, alias='studyMaterialId')


class AnalyzeResponse(BaseModel):
    success: bool
    keywords: List[KeywordEntry]
    metadata: dict
    request_id: str


class HighlightRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field('', description='Source text to partition')
    keywords: List[KeywordEntry] = Field(default_factory=list)
    active_keyword: Optional[str] = Field(None, alias='activeKeyword', description='Keyword whose detail popup is open')
    anchor: Optional[Dict[str, float]] = Field(None, description='Popup anchor {top, left}')
    render_html: bool = Field(False, alias='renderHtml')


class HighlightResponse(BaseModel):
    success: bool
    segments: List[Segment]
    stats: dict
    html: Optional[str] = None
    tooltip_html: Optional[str] = None
    request_id: str


class MaterialCreateRequest(BaseModel):
    title: Optional[str] = None
    content: str = Field(..., min_length=1)


class MaterialUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    keywords: Optional[List[KeywordEntry]] = None


class FlashcardGenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    keywords: List[KeywordEntry]
    study_material_id: Optional[int] = Field(None, alias='studyMaterialId')


class FlashcardCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    study_material_id: Optional[int] = Field(None, alias='studyMaterialId')


class FlashcardUpdateRequest(BaseModel):
    front: Optional[str] = None
    back: Optional[str] = None


class MasteredRequest(BaseModel):
    mastered: bool


@app.post('/api/analyze', response_model=AnalyzeResponse)
async def analyze_content(req: AnalyzeRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not req.content or not req.content.strip():
        return _error(400, 'Content is required', request_id)

    LOG.info('analyze_start', extra={'request_id': request_id, 'text_length': len(req.content)})
    start = time.time()
    try:
        cache = CacheManager.get_instance()
        keywords = cache.get_keywords(req.content)
        cache_hit = keywords is not None
        if not cache_hit:
            keywords = await asyncio.to_thread(extract_keywords, req.content, request_id)
            cache.set_keywords(req.content, keywords)

        if req.study_material_id is not None:
            stored = db.set_material_keywords(user['id'], req.study_material_id, keywords)
            if not stored:
                LOG.warning('analyze_material_not_found', extra={'request_id': request_id, 'study_material_id': req.study_material_id})

        duration_ms = int((time.time() - start) * 1000)
        log_keyword_extraction(request_id, len(keywords), len(req.content), duration_ms, cache_hit=cache_hit)
        metadata = {'processing_time_ms': duration_ms, 'cache_hit': cache_hit, 'keyword_count': len(keywords), 'model_used': os.getenv('OPENAI_MODEL')}
        return AnalyzeResponse(success=True, keywords=keywords, metadata=metadata, request_id=request_id)
    except KeywordValidationError as e:
        LOG.exception('analyze_validation_error', exc_info=True)
        return _error(422, 'Keyword extraction output invalid', request_id, str(e))
    except KeywordTimeoutError as e:
        LOG.exception('analyze_timeout', exc_info=True)
        return _error(504, 'LLM request timeout', request_id, str(e))
    except KeywordAPIError as e:
        LOG.exception('analyze_api_error', exc_info=True)
        return _error(502, 'LLM API error', request_id, str(e))
    except KeywordInputError as e:
        LOG.warning('analyze_rejected', extra={'request_id': request_id, 'error': str(e)})
        return _error(400, 'Failed to analyze content', request_id, str(e))
    except KeywordExtractorError as e:
        LOG.exception('analyze_failed', exc_info=True)
        return _error(500, 'Keyword extraction failed', request_id, str(e))
    except StorageError as e:
        LOG.exception('analyze_storage_error', exc_info=True)
        return _error(500, 'Failed to store keywords', request_id, str(e))


def _highlight(content: str, keywords: List[KeywordEntry], active_keyword: Optional[str], anchor: Optional[Dict[str, float]], render_html: bool, request_id: str) -> HighlightResponse:
    segments = match_keywords(content, keywords)
    stats = segment_stats(segments)
    log_highlight(request_id, len(content), len(keywords), stats['segment_count'], stats['keyword_segments'])

    html = None
    tooltip_html = None
    if render_html:
        state = SelectionState()
        if active_keyword:
            active = find_segment(segments, active_keyword)
            if active is not None:
                position = AnchorPosition(top=(anchor or {}).get('top', 0), left=max(0, (anchor or {}).get('left', 0)))
                state = SelectionState(active_keyword=active.keyword, anchor=position)
        html = render_segments_html(segments, active=state.active_keyword)
        tooltip_html = render_tooltip_html(state)
    return HighlightResponse(success=True, segments=segments, stats=stats, html=html, tooltip_html=tooltip_html, request_id=request_id)


@app.post('/api/highlight', response_model=HighlightResponse)
async def highlight(req: HighlightRequest, fastapi_request: Request):
    request_id = _request_id(fastapi_request)
    return _highlight(req.content, req.keywords, req.active_keyword, req.anchor, req.render_html, request_id)


@app.post('/api/study-materials', status_code=201)
async def create_material(req: MaterialCreateRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not req.content.strip():
        return _error(400, 'Content is required', request_id)
    material = db.create_material(user['id'], req.content, title=req.title)
    LOG.info('material_created', extra={'request_id': request_id, 'study_material_id': material['id']})
    return {'success': True, 'material': material, 'request_id': request_id}


@app.get('/api/study-materials')
async def list_materials(fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    return {'success': True, 'materials': db.list_materials(user['id']), 'request_id': _request_id(fastapi_request)}


@app.get('/api/study-materials/{material_id}')
async def get_material(material_id: int, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    material = db.get_material(user['id'], material_id)
    if material is None:
        return _error(404, 'Study material not found', request_id)
    return {'success': True, 'material': material, 'request_id': request_id}


@app.get('/api/study-materials/{material_id}/highlight', response_model=HighlightResponse)
async def highlight_material(material_id: int, fastapi_request: Request, active_keyword: Optional[str] = None, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    material = db.get_material(user['id'], material_id)
    if material is None:
        return _error(404, 'Study material not found', request_id)
    keywords = [KeywordEntry.model_validate(k) for k in (material['keywords'] or [])]
    return _highlight(material['content'], keywords, active_keyword, None, True, request_id)


@app.put('/api/study-materials/{material_id}')
async def update_material(material_id: int, req: MaterialUpdateRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    keywords = [k.model_dump() for k in req.keywords] if req.keywords is not None else None
    material = db.update_material(user['id'], material_id, title=req.title, content=req.content, keywords=keywords)
    if material is None:
        return _error(404, 'Study material not found', request_id)
    return {'success': True, 'material': material, 'request_id': request_id}


@app.delete('/api/study-materials/{material_id}')
async def delete_material(material_id: int, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not db.delete_material(user['id'], material_id):
        return _error(404, 'Study material not found', request_id)
    LOG.info('material_deleted', extra={'request_id': request_id, 'study_material_id': material_id})
    return {'success': True, 'message': 'Study material deleted successfully', 'request_id': request_id}


@app.post('/api/flashcards/generate', status_code=201)
async def generate_flashcards_endpoint(req: FlashcardGenerateRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not req.keywords:
        return _error(400, 'Keywords are required', request_id)
    if req.study_material_id is not None and db.get_material(user['id'], req.study_material_id) is None:
        return _error(404, 'Study material not found', request_id)

    LOG.info('flashcard_generation_start', extra={'request_id': request_id, 'keyword_count': len(req.keywords)})
    start = time.time()
    try:
        drafts = await asyncio.to_thread(generate_flashcards, req.keywords, request_id=request_id)
        flashcards = db.create_flashcards(user['id'], drafts, study_material_id=req.study_material_id)
        duration_ms = int((time.time() - start) * 1000)
        LOG.info('flashcard_generation_complete', extra={'request_id': request_id, 'count': len(flashcards), 'duration_ms': duration_ms})
        metadata = {'processing_time_ms': duration_ms, 'flashcard_count': len(flashcards), 'model_used': os.getenv('OPENAI_MODEL')}
        return {'success': True, 'flashcards': flashcards, 'metadata': metadata, 'request_id': request_id}
    except FlashcardValidationError as e:
        LOG.exception('flashcard_validation_error', exc_info=True)
        return _error(422, 'Validation failed', request_id, str(e))
    except FlashcardTimeoutError as e:
        LOG.exception('flashcard_timeout', exc_info=True)
        return _error(504, 'LLM timeout', request_id, str(e))
    except FlashcardAPIError as e:
        LOG.exception('flashcard_api_error', exc_info=True)
        return _error(502, 'LLM API error', request_id, str(e))
    except FlashcardInputError as e:
        LOG.warning('flashcard_generation_rejected', extra={'request_id': request_id, 'error': str(e)})
        return _error(400, 'Flashcard generation failed', request_id, str(e))
    except FlashcardGeneratorError as e:
        LOG.exception('flashcard_generation_failed', exc_info=True)
        return _error(500, 'Flashcard generation failed', request_id, str(e))
    except StorageError as e:
        LOG.exception('flashcard_storage_error', exc_info=True)
        return _error(500, 'Failed to store flashcards', request_id, str(e))


@app.post('/api/flashcards', status_code=201)
async def create_flashcard(req: FlashcardCreateRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    card = db.create_flashcard(user['id'], req.front, req.back, study_material_id=req.study_material_id)
    return {'success': True, 'flashcard': card, 'request_id': request_id}


@app.get('/api/flashcards')
async def list_flashcards(fastapi_request: Request, studyMaterialId: Optional[int] = None, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    flashcards = db.list_flashcards(user['id'], study_material_id=studyMaterialId)
    return {'success': True, 'flashcards': flashcards, 'request_id': _request_id(fastapi_request)}


@app.get('/api/flashcards/{flashcard_id}')
async def get_flashcard(flashcard_id: int, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    card = db.get_flashcard(user['id'], flashcard_id)
    if card is None:
        return _error(404, 'Flashcard not found', request_id)
    return {'success': True, 'flashcard': card, 'request_id': request_id}


@app.patch('/api/flashcards/{flashcard_id}/mastered')
async def set_flashcard_mastered(flashcard_id: int, req: MasteredRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not db.set_mastered(user['id'], flashcard_id, req.mastered):
        return _error(404, 'Flashcard not found', request_id)
    return {'success': True, 'mastered': req.mastered, 'request_id': request_id}


@app.put('/api/flashcards/{flashcard_id}')
async def update_flashcard(flashcard_id: int, req: FlashcardUpdateRequest, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    card = db.update_flashcard(user['id'], flashcard_id, front=req.front, back=req.back)
    if card is None:
        return _error(404, 'Flashcard not found', request_id)
    return {'success': True, 'flashcard': card, 'request_id': request_id}


@app.delete('/api/flashcards/{flashcard_id}')
async def delete_flashcard(flashcard_id: int, fastapi_request: Request, user: dict = Depends(current_user), db: Database = Depends(get_database)):
    request_id = _request_id(fastapi_request)
    if not db.delete_flashcard(user['id'], flashcard_id):
        return _error(404, 'Flashcard not found', request_id)
    return {'success': True, 'message': 'Flashcard deleted successfully', 'request_id': request_id}


@app.on_event('startup')
async def on_startup():
    LOG.info('Study aid service starting', extra={'env': settings.ENVIRONMENT})
    Database.get_instance().init_schema()
    try:
        KeywordExtractor.get_instance()
        LOG.info('KeywordExtractor warmup triggered')
    except KeywordExtractorError as e:
        LOG.warning('KeywordExtractor warmup failed', extra={'error': str(e)})
    try:
        FlashcardGenerator.get_instance()
        LOG.info('FlashcardGenerator warmup triggered')
    except FlashcardGeneratorError as e:
        LOG.warning('FlashcardGenerator warmup failed', extra={'error': str(e)})


@app.on_event('shutdown')
async def on_shutdown():
    LOG.info('Study aid service shutting down')


def _install_signal_handlers(loop: Optional[asyncio.AbstractEventLoop] = None):
    if loop is None:
        loop = asyncio.get_event_loop()

    def _handler(signum, frame):
        LOG.info('Received shutdown signal', extra={'signal': signum})
        loop.call_soon_threadsafe(loop.stop)

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


if __name__ == '__main__':
    import uvicorn

    _install_signal_handlers()
    workers = int(os.getenv('WORKERS', '1'))
    # uvicorn cannot reload with multiple workers
    if settings.ENVIRONMENT == 'development':
        workers = 1
    reload_enabled = (settings.ENVIRONMENT == 'development') and (workers == 1)

    uvicorn.run(
        'main:app',
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=reload_enabled,
        workers=workers,
    )
