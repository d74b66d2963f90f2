from abc import ABC, abstractmethod

from setup_wizard.domain.entities.session import OnboardingSession


# Persisted keys, cleared together on completion or restart.
FORM_DATA_KEY = "onboardingFormData"
COMPLETED_STEPS_KEY = "completedOnboardingSteps"
USER_DATA_KEY = "onboardingUserData"
PROGRESS_KEY = "onboardingProgress"


class SessionStorePort(ABC):
    @abstractmethod
    def load(self, session_id: str) -> OnboardingSession | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, session: OnboardingSession) -> None:
        raise NotImplementedError

    @abstractmethod
    def clear(self, session_id: str) -> None:
        """Drop form data, completed steps and owner data for the session."""
        raise NotImplementedError
