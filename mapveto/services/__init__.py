from mapveto.services.audit_service import AuditService
from mapveto.services.registry_service import RegistryService
from mapveto.services.turn_oracle import is_your_turn, sort_players_by_creation, abba_active_index
from mapveto.services.cascade_delete_service import CascadeDeleteService, CascadeDeleteCounts
from mapveto.services.results_service import ResultsService, build_results
from mapveto.services.cleanup_service import CleanupService
from mapveto.services.session_service import SessionService, validate_token
from mapveto.services.voting_service import VotingService
