from __future__ import annotations

from functools import partial
from typing import Sequence

from . import models
from .config import ScenarioSettings


class RequestPlan:
    """Builds the scripted request sequence for one load test session.

    Every call context created here counts towards ``counters.total``, and the
    server error fault is keyed on that running ordinal, so warm-up and main
    phase requests must be built in the order they will run.
    """

    def __init__(
        self,
        session_id: str,
        api_client: models.ApiClient,
        scenario: ScenarioSettings | None = None,
        counters: models.RunCounters | None = None,
    ):
        self.session_id = session_id
        self.api_client = api_client
        self.scenario = scenario or ScenarioSettings()
        self.counters = counters or models.RunCounters()

    def warmup(self, access_tokens: Sequence[str]) -> list[models.RequestDescriptor]:
        """One user info request per token, so the API caches claims before the main run."""
        return [self.user_info(token) for token in access_tokens]

    def main_phase(self, access_tokens: Sequence[str]) -> list[models.RequestDescriptor]:
        if not access_tokens:
            raise ValueError("at least one access token is required")

        scenario = self.scenario
        requests: list[models.RequestDescriptor] = []
        for index in range(scenario.main_count):
            access_token = access_tokens[index % len(access_tokens)]
            if index == scenario.expired_token_index:
                access_token += scenario.expired_token_suffix

            kind = index % 5
            if kind == 0:
                requests.append(self.user_info(access_token))
            elif kind == 1:
                requests.append(self.transactions(access_token, scenario.company_a))
            elif kind == 2:
                company_id = (
                    scenario.unauthorized_company
                    if index == scenario.unauthorized_index
                    else scenario.company_b
                )
                requests.append(self.transactions(access_token, company_id))
            elif kind == 3:
                requests.append(self.company_list(access_token))
            else:
                requests.append(self.transactions(access_token, scenario.company_c))
        return requests

    def user_info(self, access_token: str) -> models.RequestDescriptor:
        context = self._create_context(models.Operation.user_info)
        return models.RequestDescriptor(
            operation=models.Operation.user_info,
            access_token=access_token,
            context=context,
            send=partial(self.api_client.get_user_info, access_token, context),
        )

    def company_list(self, access_token: str) -> models.RequestDescriptor:
        context = self._create_context(models.Operation.company_list)
        return models.RequestDescriptor(
            operation=models.Operation.company_list,
            access_token=access_token,
            context=context,
            send=partial(self.api_client.get_company_list, access_token, context),
        )

    def transactions(self, access_token: str, company_id: int) -> models.RequestDescriptor:
        context = self._create_context(models.Operation.transactions)
        return models.RequestDescriptor(
            operation=models.Operation.transactions,
            access_token=access_token,
            context=context,
            company_id=company_id,
            send=partial(
                self.api_client.get_company_transactions, access_token, company_id, context
            ),
        )

    def _create_context(self, operation: models.Operation) -> models.CallContext:
        context = models.CallContext(session_id=self.session_id, operation_name=operation.value)
        self.counters.total += 1
        if self.counters.total == self.scenario.server_error_ordinal:
            context.cause500 = True
        return context
