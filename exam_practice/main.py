# exam_practice/main.py
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import config
from .core.database import close_db_manager, get_db_manager
from .core.exceptions import QuestionSourceError
from .core.question_source import create_question_source
from .services.allocation_service import AdaptiveAllocationService, AllocationConfig
from .services.exam_service import ExamGenerationService
from .services.scoring_service import ScoringService
from .services.session_manager import ExamSessionManager, SessionConfig
from .api.routes import router

# Setup logging
logging.basicConfig(
    level=getattr(logging, os.getenv('LOG_LEVEL', 'INFO')),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def build_services(app: FastAPI):
    """Wire storage, question source and services onto app.state"""
    db_manager = get_db_manager()
    db_health = db_manager.validate_connection()
    if not db_health["overall"]:
        raise Exception(f"Database validation failed: {db_health}")
    logger.info(f"✅ Database ready ({db_health['mode']} mode)")

    results_store = db_manager.results_store
    question_source = create_question_source(db_manager.db)

    session_manager = ExamSessionManager(
        session_config=SessionConfig.from_config(config),
        on_complete=results_store.save_result
    )
    allocation_service = AdaptiveAllocationService(question_source, AllocationConfig.from_config(config))

    app.state.db_manager = db_manager
    app.state.results_store = results_store
    app.state.question_source = question_source
    app.state.session_manager = session_manager
    app.state.allocation_service = allocation_service
    app.state.exam_service = ExamGenerationService(
        question_source, session_manager, results_store, allocation_service
    )
    app.state.scoring_service = ScoringService()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("🚀 Exam Practice API starting...")

    try:
        validation = config.validate()
        if not validation["valid"]:
            raise Exception(f"Configuration invalid: {validation['issues']}")
        logger.info("✅ Configuration validated")

        build_services(app)
        app.state.session_manager.start()

        capabilities = app.state.exam_service.validate_adaptive_capabilities()
        if not capabilities["is_valid"]:
            logger.warning(f"⚠️ Question bank limits adaptive selection: {len(capabilities['issues'])} issues")

        logger.info("✅ All systems operational")
        logger.info(f"📊 Configuration: {config.QUESTIONS_PER_EXAM} questions, {config.EXAM_TIME_LIMIT}s per exam")

    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise Exception(f"Application startup failed: {e}")

    yield

    logger.info("👋 Shutting down...")
    try:
        app.state.session_manager.stop()
        close_db_manager()
        logger.info("✅ Graceful shutdown completed")
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")

# Create FastAPI application
app = FastAPI(
    title=config.API_TITLE,
    description=config.API_DESCRIPTION,
    version=config.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGIN_LIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

# Exception handlers
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle validation errors"""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation Error",
            "message": str(exc),
            "type": "validation_error"
        }
    )

@app.exception_handler(QuestionSourceError)
async def question_source_error_handler(request: Request, exc: QuestionSourceError):
    logger.error(f"Question source error: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "Question Source Unavailable",
            "message": str(exc),
            "type": "question_source_error"
        }
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "type": "server_error"
        }
    )

@app.get("/health")
async def health_check(request: Request):
    """Component health"""
    health_status = {
        "status": "healthy",
        "service": "exam_practice_api",
        "version": config.API_VERSION
    }

    try:
        health_status["sessions"] = request.app.state.session_manager.get_stats()
    except Exception as e:
        health_status["sessions"] = "error"
        logger.warning(f"Session manager health check failed: {e}")

    try:
        db_health = request.app.state.db_manager.validate_connection()
        health_status["database"] = "healthy" if db_health["overall"] else "degraded"
    except Exception as e:
        health_status["database"] = "error"
        logger.warning(f"Database health check failed: {e}")

    if health_status["database"] != "healthy":
        health_status["status"] = "degraded"
    return health_status

@app.get("/info")
async def api_info():
    """API information and configuration"""
    return {
        "name": config.API_TITLE,
        "version": config.API_VERSION,
        "description": config.API_DESCRIPTION,
        "configuration": {
            "questions_per_exam": config.QUESTIONS_PER_EXAM,
            "exam_time_limit": config.EXAM_TIME_LIMIT,
            "auto_save_interval": config.AUTO_SAVE_INTERVAL,
            "weak_area_threshold": config.WEAK_AREA_THRESHOLD,
            "strong_area_threshold": config.STRONG_AREA_THRESHOLD,
            "weak_area_allocation_percentage": config.WEAK_AREA_ALLOCATION_PERCENTAGE,
            "passing_score": config.PASSING_SCORE,
            "using_dummy_data": config.USE_DUMMY_DATA
        },
        "endpoints": {
            "start_exam": "POST /api/exam-sessions",
            "get_session": "GET /api/exam-sessions/{session_id}",
            "submit_answer": "POST /api/exam-sessions/{session_id}/answers",
            "analysis": "GET /api/adaptive/learners/{learner_id}/analysis",
            "study_plan": "GET /api/adaptive/learners/{learner_id}/study-plan",
            "feedback": "GET /api/adaptive/results/{result_id}/feedback",
            "health": "GET /health",
            "docs": "GET /docs"
        }
    }

if __name__ == "__main__":
    import uvicorn

    debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

    logger.info("🚀 Starting Exam Practice API")
    logger.info(f"🌐 Server: http://{config.API_HOST}:{config.API_PORT}")
    logger.info(f"📚 Docs: http://{config.API_HOST}:{config.API_PORT}/docs")

    uvicorn.run(
        "exam_practice.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=debug_mode,
        log_level=os.getenv('LOG_LEVEL', 'info').lower(),
        access_log=debug_mode
    )
