from nestfind.orchestrator.messages import CatalogRequest, Request, SearchRequest, StageReply
from nestfind.orchestrator.orchestrator import SessionOrchestrator, StageTimeouts
from nestfind.orchestrator.session import SessionRegistry, SessionState, Stage
