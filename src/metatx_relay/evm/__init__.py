from .abis import (
    get_forwarder_abi,
    get_forwarder_error_abi,
    get_trusted_forwarder_abi,
    get_social_core_abi,
    get_post_nft_abi,
)
from .encoding import (
    DecodedCall,
    encode_function_call,
    decode_function_call,
    function_selector,
)
from .standards import EIP712Domain, ForwardRequestTypedData
from .signatures import (
    build_forward_request_typed_data,
    sign_forward_request,
    recover_forward_request_signer,
)
from .diagnostics import ForwarderErrorKind, RevertDiagnosis, decode_revert_data
from .forwarder import ForwarderGateway

__all__ = [
    "get_forwarder_abi",
    "get_forwarder_error_abi",
    "get_trusted_forwarder_abi",
    "get_social_core_abi",
    "get_post_nft_abi",
    "DecodedCall",
    "encode_function_call",
    "decode_function_call",
    "function_selector",
    "EIP712Domain",
    "ForwardRequestTypedData",
    "build_forward_request_typed_data",
    "sign_forward_request",
    "recover_forward_request_signer",
    "ForwarderErrorKind",
    "RevertDiagnosis",
    "decode_revert_data",
    "ForwarderGateway",
]
