from .gate import RegistrationGate, RegistrationResult, UserProfile, build_user_record

__all__ = ["RegistrationGate", "RegistrationResult", "UserProfile", "build_user_record"]
