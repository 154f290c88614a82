"""Service layer — the operation processor and the services built on it.

Services depend on the infrastructure layer through a
:class:`~repoinit.infrastructure.repository.Repository` and return
:class:`~repoinit.services.result.ServiceResult` to every interface.
"""
