"""
Token kinds and keyword tables for the iRule language.

Everything in this module is language definition rather than code: the token
enumeration consumed by the lexer and parser, the per-namespace command tables
(`HTTP_KEYWORDS`, `LB_KEYWORDS`, `SSL_KEYWORDS`, ...), and the identifier tables
used by the static validator. All tables are immutable and safe to share
between independent parses.

Exports:
    - TokenKind
    - keyword_map: word literal -> TokenKind
    - operator_map: punctuation literal -> TokenKind
    - HTTP_KEYWORDS, LB_KEYWORDS, SSL_KEYWORDS, IP_KEYWORDS, X509_KEYWORDS
    - WHEN_EVENTS, RESERVED_KEYWORDS, COMMON_HEADERS, COMMON_IDENTIFIERS
    - LOGGING_FACILITIES, COMMAND_NAMESPACES
    - STRING_SUBCOMMANDS, REGSUB_FLAGS, SWITCH_OPTIONS
    - CLASS_SUBCOMMANDS, CLASS_MATCH_OPERATORS, HTTP_HEADER_SUBCOMMANDS
"""

from enum import Enum
from types import MappingProxyType


class TokenKind(str, Enum):
    """Closed enumeration of iRule token kinds.

    Members are `str`-valued so that `tok.type == "IDENT"` keeps working.
    """

    # Structural
    LBRACE = "LBRACE"
    RBRACE = "RBRACE"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    SEMICOLON = "SEMICOLON"
    EOF = "EOF"
    ILLEGAL = "ILLEGAL"

    # Literals
    NUMBER = "NUMBER"
    STRING = "STRING"
    IDENT = "IDENT"
    VARIABLE = "VARIABLE"
    IP_ADDRESS = "IP_ADDRESS"
    REGEX = "REGEX"

    # Operators
    PLUS = "PLUS"
    MINUS = "MINUS"
    ASTERISK = "ASTERISK"
    SLASH = "SLASH"
    BANG = "BANG"
    LT = "LT"
    GT = "GT"
    LT_EQ = "LT_EQ"
    GT_EQ = "GT_EQ"
    EQ = "EQ"
    NOT_EQ = "NOT_EQ"
    AND = "AND"
    OR = "OR"
    ASSIGN = "ASSIGN"
    DOLLAR = "DOLLAR"
    PERCENT = "PERCENT"
    CARET = "CARET"
    COLON = "COLON"
    DOUBLE_COLON = "DOUBLE_COLON"

    # Reserved words
    WHEN = "WHEN"
    IF = "IF"
    THEN = "THEN"
    ELSE = "ELSE"
    ELSEIF = "ELSEIF"
    SWITCH = "SWITCH"
    CASE = "CASE"
    DEFAULT = "DEFAULT"
    SET = "SET"
    FOREACH = "FOREACH"
    IN = "IN"
    RETURN = "RETURN"
    TRUE = "TRUE"
    FALSE = "FALSE"
    LTM = "LTM"
    RULE = "RULE"
    CLASS = "CLASS"
    MATCH = "MATCH"
    MATCHES = "MATCHES"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"

    # HTTP commands
    HTTP_URI = "HTTP_URI"
    HTTP_METHOD = "HTTP_METHOD"
    HTTP_HOST = "HTTP_HOST"
    HTTP_PATH = "HTTP_PATH"
    HTTP_QUERY = "HTTP_QUERY"
    HTTP_HEADER = "HTTP_HEADER"
    HTTP_REDIRECT = "HTTP_REDIRECT"
    HTTP_RESPOND = "HTTP_RESPOND"
    HTTP_COLLECT = "HTTP_COLLECT"
    HTTP_RELEASE = "HTTP_RELEASE"
    HTTP_PAYLOAD = "HTTP_PAYLOAD"
    HTTP_COOKIE = "HTTP_COOKIE"
    HTTP_VERSION = "HTTP_VERSION"
    HTTP_STATUS = "HTTP_STATUS"
    HTTP_USERNAME = "HTTP_USERNAME"
    HTTP_PASSWORD = "HTTP_PASSWORD"
    HTTP_PROXY = "HTTP_PROXY"
    HTTP_CLASS = "HTTP_CLASS"
    HTTP_COMPRESS = "HTTP_COMPRESS"
    HTTP_FILTER = "HTTP_FILTER"
    HTTP_CLOSE = "HTTP_CLOSE"
    HTTP_DISABLE = "HTTP_DISABLE"
    HTTP_ENABLE = "HTTP_ENABLE"
    HTTP_REQUEST_CMD = "HTTP_REQUEST_CMD"
    HTTP_RETRY = "HTTP_RETRY"
    HTTP_FALLBACK = "HTTP_FALLBACK"

    # SSL commands
    SSL_CIPHER = "SSL_CIPHER"
    SSL_CIPHER_BITS = "SSL_CIPHER_BITS"
    SSL_CLIENTHELLO = "SSL_CLIENTHELLO"
    SSL_SERVERHELLO = "SSL_SERVERHELLO"
    SSL_CERT = "SSL_CERT"
    SSL_VERIFY_RESULT = "SSL_VERIFY_RESULT"
    SSL_SESSIONID = "SSL_SESSIONID"
    SSL_RENEGOTIATE = "SSL_RENEGOTIATE"
    SSL_SESSIONVALID = "SSL_SESSIONVALID"
    SSL_SESSIONUPDATES = "SSL_SESSIONUPDATES"

    # X509 commands
    X509_SUBJECT = "X509_SUBJECT"
    X509_ISSUER = "X509_ISSUER"
    X509_SERIAL = "X509_SERIAL"
    X509_NOTBEFORE = "X509_NOTBEFORE"
    X509_NOTAFTER = "X509_NOTAFTER"
    X509_VERSION = "X509_VERSION"
    X509_HASH = "X509_HASH"
    X509_EXTENSIONS = "X509_EXTENSIONS"

    # IP commands
    IP_CLIENT_ADDR = "IP_CLIENT_ADDR"
    IP_SERVER_ADDR = "IP_SERVER_ADDR"
    IP_REMOTE_ADDR = "IP_REMOTE_ADDR"
    IP_LOCAL_ADDR = "IP_LOCAL_ADDR"
    IP_ADDR = "IP_ADDR"
    IP_PROTOCOL = "IP_PROTOCOL"

    # LB commands
    LB_METHOD = "LB_METHOD"
    LB_MODE = "LB_MODE"
    LB_SELECT = "LB_SELECT"
    LB_RESELECT = "LB_RESELECT"
    LB_DETACH = "LB_DETACH"
    LB_SERVER = "LB_SERVER"
    LB_POOL = "LB_POOL"
    LB_STATUS = "LB_STATUS"
    LB_ALIVE = "LB_ALIVE"
    LB_PERSIST = "LB_PERSIST"
    LB_SCORE = "LB_SCORE"
    LB_PRIORITY = "LB_PRIORITY"
    LB_CONNECT = "LB_CONNECT"
    LB_BIAS = "LB_BIAS"
    LB_SNAT = "LB_SNAT"
    LB_LIMIT = "LB_LIMIT"
    LB_CLASS = "LB_CLASS"


HTTP_KEYWORDS = MappingProxyType(
    {
        "HTTP::uri": TokenKind.HTTP_URI,
        "HTTP::method": TokenKind.HTTP_METHOD,
        "HTTP::host": TokenKind.HTTP_HOST,
        "HTTP::path": TokenKind.HTTP_PATH,
        "HTTP::query": TokenKind.HTTP_QUERY,
        "HTTP::header": TokenKind.HTTP_HEADER,
        "HTTP::redirect": TokenKind.HTTP_REDIRECT,
        "HTTP::respond": TokenKind.HTTP_RESPOND,
        "HTTP::collect": TokenKind.HTTP_COLLECT,
        "HTTP::release": TokenKind.HTTP_RELEASE,
        "HTTP::payload": TokenKind.HTTP_PAYLOAD,
        "HTTP::cookie": TokenKind.HTTP_COOKIE,
        "HTTP::version": TokenKind.HTTP_VERSION,
        "HTTP::status": TokenKind.HTTP_STATUS,
        "HTTP::username": TokenKind.HTTP_USERNAME,
        "HTTP::password": TokenKind.HTTP_PASSWORD,
        "HTTP::proxy": TokenKind.HTTP_PROXY,
        "HTTP::class": TokenKind.HTTP_CLASS,
        "HTTP::compress": TokenKind.HTTP_COMPRESS,
        "HTTP::filter": TokenKind.HTTP_FILTER,
        "HTTP::close": TokenKind.HTTP_CLOSE,
        "HTTP::disable": TokenKind.HTTP_DISABLE,
        "HTTP::enable": TokenKind.HTTP_ENABLE,
        "HTTP::request": TokenKind.HTTP_REQUEST_CMD,
        "HTTP::retry": TokenKind.HTTP_RETRY,
        "HTTP::fallback": TokenKind.HTTP_FALLBACK,
    }
)

SSL_KEYWORDS = MappingProxyType(
    {
        "SSL::cipher": TokenKind.SSL_CIPHER,
        "SSL::cipher_bits": TokenKind.SSL_CIPHER_BITS,
        "SSL::clienthello": TokenKind.SSL_CLIENTHELLO,
        "SSL::serverhello": TokenKind.SSL_SERVERHELLO,
        "SSL::cert": TokenKind.SSL_CERT,
        "SSL::verify_result": TokenKind.SSL_VERIFY_RESULT,
        "SSL::sessionid": TokenKind.SSL_SESSIONID,
        "SSL::renegotiate": TokenKind.SSL_RENEGOTIATE,
        "SSL::sessionvalid": TokenKind.SSL_SESSIONVALID,
        "SSL::sessionupdates": TokenKind.SSL_SESSIONUPDATES,
    }
)

X509_KEYWORDS = MappingProxyType(
    {
        "X509::subject": TokenKind.X509_SUBJECT,
        "X509::issuer": TokenKind.X509_ISSUER,
        "X509::serial": TokenKind.X509_SERIAL,
        "X509::notbefore": TokenKind.X509_NOTBEFORE,
        "X509::notafter": TokenKind.X509_NOTAFTER,
        "X509::version": TokenKind.X509_VERSION,
        "X509::hash": TokenKind.X509_HASH,
        "X509::extensions": TokenKind.X509_EXTENSIONS,
    }
)

IP_KEYWORDS = MappingProxyType(
    {
        "IP::client_addr": TokenKind.IP_CLIENT_ADDR,
        "IP::server_addr": TokenKind.IP_SERVER_ADDR,
        "IP::remote_addr": TokenKind.IP_REMOTE_ADDR,
        "IP::local_addr": TokenKind.IP_LOCAL_ADDR,
        "IP::addr": TokenKind.IP_ADDR,
        "IP::protocol": TokenKind.IP_PROTOCOL,
    }
)

LB_KEYWORDS = MappingProxyType(
    {
        "LB::method": TokenKind.LB_METHOD,
        "LB::mode": TokenKind.LB_MODE,
        "LB::select": TokenKind.LB_SELECT,
        "LB::reselect": TokenKind.LB_RESELECT,
        "LB::detach": TokenKind.LB_DETACH,
        "LB::server": TokenKind.LB_SERVER,
        "LB::pool": TokenKind.LB_POOL,
        "LB::status": TokenKind.LB_STATUS,
        "LB::alive": TokenKind.LB_ALIVE,
        "LB::persist": TokenKind.LB_PERSIST,
        "LB::score": TokenKind.LB_SCORE,
        "LB::priority": TokenKind.LB_PRIORITY,
        "LB::connect": TokenKind.LB_CONNECT,
        "LB::bias": TokenKind.LB_BIAS,
        "LB::snat": TokenKind.LB_SNAT,
        "LB::limit": TokenKind.LB_LIMIT,
        "LB::class": TokenKind.LB_CLASS,
    }
)

# Word literals that map to reserved or operator kinds.
_WORD_KEYWORDS = {
    "when": TokenKind.WHEN,
    "if": TokenKind.IF,
    "then": TokenKind.THEN,
    "else": TokenKind.ELSE,
    "elseif": TokenKind.ELSEIF,
    "switch": TokenKind.SWITCH,
    "case": TokenKind.CASE,
    "default": TokenKind.DEFAULT,
    "set": TokenKind.SET,
    "foreach": TokenKind.FOREACH,
    "in": TokenKind.IN,
    "return": TokenKind.RETURN,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
    "ltm": TokenKind.LTM,
    "rule": TokenKind.RULE,
    "class": TokenKind.CLASS,
    "match": TokenKind.MATCH,
    "matches": TokenKind.MATCHES,
    "matches_regex": TokenKind.MATCHES,
    "matches_glob": TokenKind.MATCHES,
    "contains": TokenKind.CONTAINS,
    "starts_with": TokenKind.STARTS_WITH,
    "ends_with": TokenKind.ENDS_WITH,
    "eq": TokenKind.EQ,
    "equals": TokenKind.EQ,
    "ne": TokenKind.NOT_EQ,
    "and": TokenKind.AND,
    "or": TokenKind.OR,
    "not": TokenKind.BANG,
}

keyword_map = MappingProxyType(
    {
        **_WORD_KEYWORDS,
        **HTTP_KEYWORDS,
        **SSL_KEYWORDS,
        **X509_KEYWORDS,
        **IP_KEYWORDS,
        **LB_KEYWORDS,
    }
)

operator_map = MappingProxyType(
    {
        "{": TokenKind.LBRACE,
        "}": TokenKind.RBRACE,
        "[": TokenKind.LBRACKET,
        "]": TokenKind.RBRACKET,
        "(": TokenKind.LPAREN,
        ")": TokenKind.RPAREN,
        ",": TokenKind.COMMA,
        ";": TokenKind.SEMICOLON,
        "-": TokenKind.MINUS,
        "*": TokenKind.ASTERISK,
        "/": TokenKind.SLASH,
        "!": TokenKind.BANG,
        "<": TokenKind.LT,
        ">": TokenKind.GT,
        "<=": TokenKind.LT_EQ,
        ">=": TokenKind.GT_EQ,
        "=": TokenKind.ASSIGN,
        "==": TokenKind.EQ,
        "!=": TokenKind.NOT_EQ,
        "&&": TokenKind.AND,
        "||": TokenKind.OR,
        "%": TokenKind.PERCENT,
        "^": TokenKind.CARET,
        ":": TokenKind.COLON,
        "::": TokenKind.DOUBLE_COLON,
    }
)

WHEN_EVENTS = frozenset(
    {
        "HTTP_REQUEST",
        "HTTP_RESPONSE",
        "LB_SELECTED",
        "CLIENT_ACCEPTED",
        "SERVER_CONNECTED",
        "CLIENTSSL_HANDSHAKE",
        "SERVERSSL_HANDSHAKE",
        "TCP_REQUEST",
        "TCP_RESPONSE",
        "USER_REQUEST",
        "USER_RESPONSE",
        "RULE_INIT",
        "DNS_REQUEST",
        "DNS_RESPONSE",
        "SSL_CLIENTHELLO",
        "SSL_SERVERHELLO",
    }
)

RESERVED_KEYWORDS = frozenset(
    {
        "when",
        "if",
        "else",
        "elseif",
        "foreach",
        "for",
        "switch",
        "case",
        "default",
        "return",
        "set",
        "unset",
        "puts",
        "log",
        "while",
        "break",
        "continue",
        "exit",
        "abort",
    }
)

COMMON_HEADERS = frozenset(
    h.lower()
    for h in (
        "Accept",
        "Accept-Charset",
        "Accept-Encoding",
        "Accept-Language",
        "Authorization",
        "Cache-Control",
        "Connection",
        "Cookie",
        "Content-Length",
        "Content-MD5",
        "Content-Type",
        "Date",
        "Expect",
        "From",
        "Host",
        "If-Match",
        "If-Modified-Since",
        "If-None-Match",
        "If-Range",
        "If-Unmodified-Since",
        "Max-Forwards",
        "Pragma",
        "Proxy-Authorization",
        "Range",
        "Referer",
        "TE",
        "Upgrade",
        "User-Agent",
        "Via",
        "Warning",
        "X-Requested-With",
        "X-Forwarded-For",
        "X-Forwarded-Host",
        "X-Forwarded-Proto",
        "X-Csrf-Token",
        "Server",
        "X-Powered-By",
        "names",
        "Location",
    )
)

COMMON_IDENTIFIERS = frozenset(
    i.lower()
    for i in (
        "log", "puts", "exit", "reject", "insert", "remove", "set", "unset",
        "if", "else", "elseif", "switch", "case", "default", "foreach", "for",
        "while", "break", "continue", "return", "proc", "catch", "eval",
        "local0", "local1", "local2", "local3", "local4", "local5", "local6",
        "local7", "content_type", "uri_path", "value", "pool", "path",
        "domain", "expires", "content", "node", "virtual", "class", "table",
        "persist", "timing", "after", "event", "clock", "format", "expr",
        "call", "binary", "b64encode", "b64decode", "md5", "sha1", "sha256",
        "sha384", "sha512", "redirect", "compress", "decompress", "cookie",
        "getfield", "findstr", "scan", "matchclass", "priority", "when", "use",
        "client_addr", "server_addr", "ip2rd", "rd2ip",
        # Tcl built-ins and common iRule commands
        "drop", "discard", "forward", "snat", "snatpool", "session", "incr",
        "append", "lappend", "lindex", "llength", "lrange", "lsearch", "lsort",
        "list", "join", "split", "concat", "regexp", "regsub", "string",
        "subst", "info", "array", "upvar", "substr", "sharedvar",
        "static", "active_members", "active_nodes", "members", "whereis",
        "crc32", "URI::decode", "URI::encode", "URI::query", "URI::path",
        "URI::basename", "CRYPTO::encrypt", "CRYPTO::decrypt", "ACCESS::session",
        "TCP::collect", "TCP::release", "TCP::payload", "TCP::respond",
        "TCP::close", "TCP::client_port", "TCP::local_port", "TCP::remote_port",
        "DNS::question", "DNS::answer", "DNS::rr", "DNS::return",
    )
)

LOGGING_FACILITIES = frozenset(f"local{n}." for n in range(8))

COMMAND_NAMESPACES = frozenset({"HTTP", "TCP", "SSL", "LB"})

STRING_SUBCOMMANDS = frozenset(
    {
        "contains",
        "equals",
        "tolower",
        "toupper",
        "length",
        "substring",
        "match",
        "map",
        "replace",
        "trim",
        "compare",
        "findstr",
        "reverse",
        "repeat",
        "range",
        "index",
        "last",
        "first",
        "trimleft",
        "trimright",
        "totitle",
        "is",
    }
)

REGSUB_FLAGS = frozenset({"all", "nocase"})

SWITCH_OPTIONS = frozenset({"-glob", "-regex", "-exact", "-nocase"})

CLASS_SUBCOMMANDS = frozenset(
    {
        "match",
        "search",
        "lookup",
        "exists",
        "names",
        "size",
        "get",
        "element",
        "type",
        "startsearch",
        "nextelement",
        "anymore",
        "donesearch",
    }
)

CLASS_MATCH_OPTIONS = frozenset({"-name", "-value", "-index", "-element", "-all"})

CLASS_MATCH_OPERATORS = frozenset({"equals", "starts_with", "ends_with", "contains"})

HTTP_HEADER_SUBCOMMANDS = frozenset(
    {
        "value",
        "values",
        "names",
        "count",
        "exists",
        "insert",
        "remove",
        "replace",
        "at",
        "is_keepalive",
        "is_redirect",
        "sanitize",
        "lws",
    }
)

__all__ = [
    "CLASS_MATCH_OPERATORS",
    "CLASS_MATCH_OPTIONS",
    "CLASS_SUBCOMMANDS",
    "COMMAND_NAMESPACES",
    "COMMON_HEADERS",
    "COMMON_IDENTIFIERS",
    "HTTP_HEADER_SUBCOMMANDS",
    "HTTP_KEYWORDS",
    "IP_KEYWORDS",
    "LB_KEYWORDS",
    "LOGGING_FACILITIES",
    "REGSUB_FLAGS",
    "RESERVED_KEYWORDS",
    "SSL_KEYWORDS",
    "STRING_SUBCOMMANDS",
    "SWITCH_OPTIONS",
    "TokenKind",
    "WHEN_EVENTS",
    "X509_KEYWORDS",
    "keyword_map",
    "operator_map",
]
