# classes/base_utils.py


import base64
import binascii
import json
import logging
import re

import commentjson
import yaml
from json_repair import repair_json
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from classes.config import IMAGE_EDIT_MODEL, LLM_TIMEOUT, PROJECT_ID, REGION, TEXT_MODEL
from classes.errors import AiServiceError, ValidationFailure
from classes.llm_client import ChatLlmClient, ImageEditClient, LlmClient
from classes.models import ChatContent


logger = logging.getLogger("gallery_backend")


class BaseUtils():
    llm_timeout: float = LLM_TIMEOUT

    # LLM instances are built lazily on first use; tests assign fakes directly.
    llm = None
    chat_llm = None
    image_llm = None

    # -----------------------
    # General Utils
    # -----------------------

    def color_print(self, text, color=None, end_value=None):
        COLOR_CODES = {
            'black': '30', 'red': '31', 'green': '32', 'yellow': '33', 'blue': '34', 'magenta': '35',
            'cyan': '36', 'white': '37', 'bright_black': '90', 'bright_red': '91', 'bright_green': '92',
            'bright_yellow': '93', 'bright_blue': '94', 'bright_magenta': '95', 'bright_cyan': '96', 'bright_white': '97'
        }
        if color and color.lower() in COLOR_CODES:
            color_code = COLOR_CODES[color.lower()]
            start = f"\033[{color_code}m"
            end = "\033[0m"
            text = f"{start}{text}{end}"
        logger.info(str(text))
        return False

    def clean_triple_backticks(self, code) -> str:
        pattern = r'```[a-zA-Z]*\n?|```\n?'
        return re.sub(pattern, '', code)

    def _coerce_field_to_str(self, value) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        try:
            return json.dumps(value, indent=2)
        except TypeError:
            return str(value).strip()

    def unsafe_string_format(self, dest_string, print_unused_keys_report=True, **kwargs):
        """
        Replaces {key} placeholders only for the keys passed in kwargs.

        Unlike str.format, braces belonging to embedded JSON examples are left
        alone; unknown placeholders stay as they are and get reported.
        """
        missing_keys = []

        def replacer(match):
            key = match.group(1)
            if key in kwargs:
                return str(kwargs[key])
            missing_keys.append(key)
            return match.group(0)

        pattern = re.compile(r'\{(\w+)\}')
        result = pattern.sub(replacer, dest_string)
        if missing_keys and print_unused_keys_report:
            logger.debug(f"Missing keys within string-to-format in unsafe_string_format: {', '.join(missing_keys)}")
        return result

    # -----------------------
    # Model output parsing
    # -----------------------

    def _sanitize_json_string(self, input_str: str) -> str:
        """
        Prepares a JSON-ish model reply for YAML parsing: strips fences and
        comments, escapes stray backslashes, newlines and quotes inside strings.
        """
        def process_string_segment(match):
            content = match.group(1)
            content = re.sub(r'(?<!\\)\\(?![bfnrtu"\\/])', r'\\\\', content)
            content = re.sub(r'(?<!\\)\n', r'\\n', content)
            content = re.sub(r'(?<!\\)"', r'\"', content)
            return f'"{content}"'

        input_str = self.clean_triple_backticks(input_str)
        input_str = re.sub(r'^\s*//.*?$|/\*.*?\*/', '', input_str, flags=re.MULTILINE | re.DOTALL)
        return re.sub(r'(?<!\\)"((?:[^"\\]|\\.)*?)"', process_string_segment, input_str, flags=re.DOTALL)

    def _try_load_json(self, json_str: str):
        err = ""
        try:
            data = commentjson.loads(self.clean_triple_backticks(json_str))
            if isinstance(data, (dict, list)):
                return data, ""
            err = "JSON parsing did not produce an object."
        except Exception as e:
            err = str(e)
        try:
            data = yaml.safe_load(self._sanitize_json_string(json_str))
            if isinstance(data, (dict, list)):
                return data, ""
            err += "\n--\nYAML parsing did not produce an object."
        except Exception as e:
            err += "\n--\n" + str(e)
        return None, err

    def load_fault_tolerant_json(self, json_str, allow_llm_repair=True):
        """
        Parse a model reply that is supposed to be JSON.

        Tries commentjson, then YAML on a sanitised copy, then json_repair, and
        finally asks the text model to fix it. Raises AiServiceError when all
        of that fails.
        """
        json_str = json_str or ""
        data, err = self._try_load_json(json_str)
        if data is not None:
            return data

        repaired_json_str = repair_json(self.clean_triple_backticks(json_str))
        r_data, r_err = self._try_load_json(repaired_json_str)
        if r_data:
            return r_data

        if not allow_llm_repair or not json_str.strip():
            raise AiServiceError(f"load_fault_tolerant_json: JSON parsing failed: {r_err}")

        self.color_print(f"load_fault_tolerant_json: JSON parsing failed: {r_err}. \nTrying LLM recovery...", color="red")
        prompt = f"""
I encountered an issue while parsing the following JSON data. Here is the original JSON string:
```
{json_str}
```
The error message was: {r_err}
Please return the corrected JSON and nothing else, as further comments would break the JSON parsing.
If you think the JSON is correct, return it as it is.
        """
        repaired_json_str = self._get_llm().invoke(prompt)
        r_data, r_err = self._try_load_json(repaired_json_str)
        if r_data is not None:
            return r_data
        raise AiServiceError(f"load_fault_tolerant_json: JSON parsing failed: {r_err}")

    # -----------------------
    # Image parts
    # -----------------------

    def _decode_image(self, image_base64: str, mime_type: str) -> bytes:
        if not image_base64 or not mime_type:
            raise ValidationFailure("An image (imageBase64 and imageMimeType) is required.")
        if not mime_type.startswith("image/"):
            raise ValidationFailure(f"Unsupported image type: {mime_type}")
        # tolerate a full data: URL
        if image_base64.startswith("data:"):
            image_base64 = image_base64.split(",", 1)[-1]
        try:
            return base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationFailure("imageBase64 is not valid base64 data.")

    def _image_block(self, image_base64: str, mime_type: str) -> dict:
        self._decode_image(image_base64, mime_type)
        if image_base64.startswith("data:"):
            url = image_base64
        else:
            url = f"data:{mime_type};base64,{image_base64}"
        return {"type": "image_url", "image_url": {"url": url}}

    def _human_message_with_image(self, text: str, image_base64: str, mime_type: str) -> HumanMessage:
        return HumanMessage(content=[self._image_block(image_base64, mime_type), {"type": "text", "text": text}])

    def _chat_contents_to_messages(self, history) -> list[BaseMessage]:
        """
        Client-side chat transcript ({role: user|model, parts: [{text}]}) to
        LangChain messages. Image parts from earlier turns are not replayed.
        """
        messages: list[BaseMessage] = []
        for raw in history or []:
            turn = raw if isinstance(raw, ChatContent) else ChatContent.model_validate(raw)
            text = "\n".join(p.text for p in turn.parts if p.text)
            if not text:
                continue
            if turn.role == "model":
                messages.append(AIMessage(content=text))
            else:
                messages.append(HumanMessage(content=text))
        return messages

    # -----------------------
    # LLM base plumbing
    # -----------------------

    def _build_llms_for_model(self, model_name: str, timeout: float | None = None):
        """
        Build the completion and chat clients for the given model name.
        Falls back to None/None if creation fails.
        """
        if not timeout:
            timeout = self.llm_timeout
        try:
            llm = LlmClient(
                model_name=model_name,
                vertex_project=PROJECT_ID,
                vertex_region=REGION,
                timeout=timeout
            )
            chat_llm = ChatLlmClient(
                model_name=model_name,
                vertex_project=PROJECT_ID,
                vertex_region=REGION,
                timeout=timeout
            )
            return llm, chat_llm
        except Exception as e:
            logger.warning(f"Could not initialize LLMs for {model_name}: {e}")
            return None, None

    def _get_llm(self):
        if self.llm is None:
            self.llm, self.chat_llm = self._build_llms_for_model(TEXT_MODEL)
        if self.llm is None:
            raise AiServiceError("The text model is not available.")
        return self.llm

    def _get_chat_llm(self):
        if self.chat_llm is None:
            self.llm, self.chat_llm = self._build_llms_for_model(TEXT_MODEL)
        if self.chat_llm is None:
            raise AiServiceError("The chat model is not available.")
        return self.chat_llm

    def _get_image_llm(self):
        if self.image_llm is None:
            try:
                self.image_llm = ImageEditClient(IMAGE_EDIT_MODEL, vertex_project=PROJECT_ID, vertex_region=REGION)
            except Exception as e:
                logger.warning(f"Could not initialize image model {IMAGE_EDIT_MODEL}: {e}")
                raise AiServiceError("The image model is not available.")
        return self.image_llm
