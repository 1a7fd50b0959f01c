from abc import abstractmethod
import json
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.GenerationError import GenerationError
from shared.helper.HelperConfig import HelperConfig

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=None)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict], temperature: float | None = None, json_schema: dict | None = None) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "user", "content": "..."}]).
            temperature (float | None): Sampling temperature, backend default if None.
            json_schema (dict | None): JSON schema the reply must follow (structured output).

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str:
        """Extract the assistant reply text from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            str: The assistant reply text.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict], temperature: float | None = None, json_schema: dict | None = None) -> str:
        """Send a chat/completion request and return the assistant reply text.

        Raises:
            ClientRequestError: If the backend answers with a non-2xx status.
            ValueError: If the response does not contain a valid reply.
        """
        body = self.get_chat_payload(messages, temperature=temperature, json_schema=json_schema)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())

    async def do_generate_text(self, system: str, prompt: str, temperature: float | None = None) -> str:
        """Generate free text from a system instruction and a user prompt."""
        return await self.do_chat(_build_messages(system, prompt), temperature=temperature)

    async def do_generate_object(self, system: str, prompt: str, schema: type[SchemaT], temperature: float | None = None) -> SchemaT:
        """Generate a reply constrained to a pydantic schema and validate it.

        Args:
            system (str): System instruction.
            prompt (str): User prompt.
            schema (type[SchemaT]): Pydantic model the reply must validate against.
            temperature (float | None): Sampling temperature.

        Returns:
            SchemaT: The validated object.

        Raises:
            GenerationError: If the reply is not JSON or violates the schema.
        """
        raw = await self.do_chat(
            _build_messages(system, prompt),
            temperature=temperature,
            json_schema=schema.model_json_schema(),
        )
        try:
            return schema.model_validate(json.loads(_strip_code_fence(raw)))
        except json.JSONDecodeError as exc:
            raise GenerationError(f"Model reply is not valid JSON: {exc}", raw_output=raw) from exc
        except ValidationError as exc:
            raise GenerationError(
                f"Model reply does not match {schema.__name__}: {exc.error_count()} error(s)",
                raw_output=raw,
            ) from exc


def _build_messages(system: str, prompt: str) -> list[dict]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": prompt},
    ]


def _strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json fence some models add despite instructions."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()
