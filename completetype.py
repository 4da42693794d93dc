"""
Complete types for D-Bus: a readable notation for D-Bus types, such as

    Dict<String,Struct<Int32,Array<Byte>>>

together with conversions between that notation, a tree of CompleteType
objects, and raw D-Bus type signatures such as “a{s(iay)}”. Names which
are not built-in keywords are user-defined types; these are broken down
into built-in notation by a caller-supplied resolver function, and
recovered from signatures by a caller-supplied disambiguator function.
"""
#+
# Copyright 2017 Lawrence D'Oliveiro <ldo@geek-central.gen.nz>.
# Licensed under the GNU Lesser General Public License v2.1 or later.
#-

import logging
import dbussig
from dbussig import \
    DBUS, \
    DBusError, \
    SignatureIter

_log = logging.getLogger(__name__)

MAX_DEPTH = 20 # deepest nesting of containers and user types accepted by from_string

PRIMITIVES = \
    ( # built-in keywords and their type codes, in the order they are tried
        ("Byte", DBUS.TYPE_BYTE),
        ("Boolean", DBUS.TYPE_BOOLEAN),
        ("Int16", DBUS.TYPE_INT16),
        ("UInt16", DBUS.TYPE_UINT16),
        ("Int32", DBUS.TYPE_INT32),
        ("UInt32", DBUS.TYPE_UINT32),
        ("Int64", DBUS.TYPE_INT64),
        ("UInt64", DBUS.TYPE_UINT64),
        ("Double", DBUS.TYPE_DOUBLE),
        ("String", DBUS.TYPE_STRING),
        ("ObjectPath", DBUS.TYPE_OBJECT_PATH),
        ("Signature", DBUS.TYPE_SIGNATURE),
        ("Variant", DBUS.TYPE_VARIANT),
    )
keyword_to_code = dict((name, chr(code)) for name, code in PRIMITIVES)
code_to_keyword = dict((chr(code), name) for name, code in PRIMITIVES)
# variants are not named by generic signature inference; a disambiguator has to
inferable_codes = dict \
  (
    (code, name) for name, code in PRIMITIVES if code != DBUS.TYPE_VARIANT
  )

ARRAY_PREFIX = "Array<"
STRUCT_PREFIX = "Struct<"
DICT_PREFIX = "Dict<"
ARGS_END = ">"

class ParseError(DBusError) :
    "reports a failure to parse a complete type name or infer one from a signature." \
    " The exception text is just the message, without the error name."

    def __init__(self, message) :
        super().__init__(DBUS.ERROR_FAILED, message)
        self.args = (message,)
    #end __init__

#end ParseError

class CompleteType :
    "a node in a tree representing a fully-resolved D-Bus type. “signature” is" \
    " the D-Bus signature of the node, “user_type” is the name of the user-defined" \
    " type it was resolved from (or None), and “contained_types” is a tuple of" \
    " child nodes: the element type of an array, the key and value types of a dict," \
    " or the member types of a struct. Instances are immutable; normally they are" \
    " created by from_string()."

    __slots__ = ("_signature", "_user_type", "_contained_types") # to forestall typos

    def __init__(self, signature, user_type = None, contained_types = ()) :
        if not isinstance(signature, str) or len(signature) == 0 :
            raise TypeError("signature must be a nonempty str")
        #end if
        if user_type != None and not isinstance(user_type, str) :
            raise TypeError("user_type must be a str or None")
        #end if
        contained_types = tuple(contained_types)
        if not all(isinstance(elt, CompleteType) for elt in contained_types) :
            raise TypeError("contained_types must all be CompleteType objects")
        #end if
        self._signature = signature
        self._user_type = user_type
        self._contained_types = contained_types
    #end __init__

    @property
    def signature(self) :
        return \
            self._signature
    #end signature

    @property
    def user_type(self) :
        return \
            self._user_type
    #end user_type

    @property
    def contained_types(self) :
        return \
            self._contained_types
    #end contained_types

    @property
    def is_basic(self) :
        "is this a primitive (non-container) type."
        return \
            len(self._signature) == 1
    #end is_basic

    @property
    def is_array(self) :
        "is this an array, excluding dicts."
        return \
            self._signature[0] == chr(DBUS.TYPE_ARRAY) and not self.is_dict
    #end is_array

    @property
    def is_dict(self) :
        return \
            self._signature.startswith(chr(DBUS.TYPE_ARRAY) + chr(DBUS.DICT_ENTRY_BEGIN_CHAR))
    #end is_dict

    @property
    def is_struct(self) :
        return \
            self._signature[0] == chr(DBUS.STRUCT_BEGIN_CHAR)
    #end is_struct

    def with_user_type(self, user_type) :
        "returns a copy of this node labelled with the given user-defined type name."
        return \
            type(self)(self._signature, user_type, self._contained_types)
    #end with_user_type

    def __eq__(self, other) :
        if isinstance(other, CompleteType) :
            result = \
                (
                    self._signature == other._signature
                and
                    self._user_type == other._user_type
                and
                    self._contained_types == other._contained_types
                )
        else :
            result = NotImplemented
        #end if
        return \
            result
    #end __eq__

    def __hash__(self) :
        return \
            hash((self._signature, self._user_type, self._contained_types))
    #end __hash__

    def __repr__(self) :
        return \
            (
                "%s(%s, %s, %s)"
            %
                (
                    type(self).__name__,
                    repr(self._signature),
                    repr(self._user_type),
                    repr(self._contained_types),
                )
            )
    #end __repr__

    def __str__(self) :
        return \
            to_string(self, False)
    #end __str__

#end CompleteType

#+
# Splitting of type argument lists
#-

def _split(text) :
    # returns the top-level comma-separated segments of text, and
    # the bracket depth left over at the end.
    result = []
    depth = 0
    start = 0
    for pos, ch in enumerate(text) :
        if ch == "<" :
            depth += 1
        elif ch == ">" :
            depth -= 1
        elif ch == "," and depth == 0 :
            result.append(text[start:pos])
            start = pos + 1
        #end if
    #end for
    result.append(text[start:])
    return \
        result, depth
#end _split

def split_types(text) :
    "splits a list of type names on commas that are not nested inside angle" \
    " brackets. Always returns at least one item, the last one possibly empty." \
    " Never fails; unbalanced brackets just give a best-effort split."
    return \
        _split(text)[0]
#end split_types

def split_types_checked(text) :
    "like split_types, but raises ParseError if the angle brackets in text" \
    " do not balance."
    result, depth = _split(text)
    if depth != 0 :
        raise ParseError("Unable to split '%s': bracket count mismatch" % text)
    #end if
    return \
        result
#end split_types_checked

#+
# Parsing of complete type names
#-

def _parse_args(text, args, resolve, depth) :
    # parses each of the type names in args, which were taken from the
    # container expression text.
    result = []
    for arg in args :
        if len(arg) == 0 :
            raise ParseError("Empty type in '%s'" % text)
        #end if
        result.append(_from_string(arg, resolve, depth + 1))
    #end for
    return \
        result
#end _parse_args

def _from_string(text, resolve, depth) :
    if depth > MAX_DEPTH :
        _log.warning("giving up on %r at nesting depth %d", text, depth)
        raise ParseError("Max depth reached. Aborting.")
    #end if
    if text in keyword_to_code :
        result = CompleteType(keyword_to_code[text])
    elif text.startswith(ARRAY_PREFIX) and text.endswith(ARGS_END) :
        contained = _parse_args \
          (
            text,
            [text[len(ARRAY_PREFIX):- len(ARGS_END)]],
            resolve,
            depth
          )
        result = CompleteType \
          (
            signature = chr(DBUS.TYPE_ARRAY) + contained[0].signature,
            contained_types = contained
          )
    elif text.startswith(STRUCT_PREFIX) and text.endswith(ARGS_END) :
        contained = _parse_args \
          (
            text,
            split_types_checked(text[len(STRUCT_PREFIX):- len(ARGS_END)]),
            resolve,
            depth
          )
        result = CompleteType \
          (
            signature =
                    chr(DBUS.STRUCT_BEGIN_CHAR)
                +
                    "".join(elt.signature for elt in contained)
                +
                    chr(DBUS.STRUCT_END_CHAR),
            contained_types = contained
          )
    elif text.startswith(DICT_PREFIX) and text.endswith(ARGS_END) :
        args = split_types_checked(text[len(DICT_PREFIX):- len(ARGS_END)])
        if len(args) != 2 :
            raise ParseError("Wrong number of arguments in Dict for '%s'" % text)
        #end if
        contained = _parse_args(text, args, resolve, depth)
        result = CompleteType \
          (
            signature =
                    chr(DBUS.TYPE_ARRAY)
                +
                    chr(DBUS.DICT_ENTRY_BEGIN_CHAR)
                +
                    contained[0].signature
                +
                    contained[1].signature
                +
                    chr(DBUS.DICT_ENTRY_END_CHAR),
            contained_types = contained
          )
    else :
        if resolve != None :
            try :
                broken_down = resolve(text)
            except ParseError :
                raise
            except Exception as fail :
                raise ParseError("Unknown type '%s'" % text) from fail
            #end try
        else :
            broken_down = None
        #end if
        if broken_down == None or broken_down == "" :
            raise ParseError("Unknown type '%s'" % text)
        #end if
        if not isinstance(broken_down, str) :
            raise TypeError("resolver must return a str, not %s" % type(broken_down).__name__)
        #end if
        _log.debug("user type %r breaks down to %r", text, broken_down)
        result = _from_string(broken_down, resolve, depth + 1).with_user_type(text)
    #end if
    return \
        result
#end _from_string

def from_string(text, resolve = None) :
    "parses the complete type name text and returns a CompleteType tree. “resolve”," \
    " if not None, is called as\n" \
    "\n" \
    "    resolve(name)\n" \
    "\n" \
    " for each name that is not a built-in keyword or container expression, and" \
    " should return an equivalent type name to parse in its place, or None (or raise" \
    " ParseError) if the name is unknown. Any other exception it raises is reported" \
    " as an unknown type. Nodes produced from such names have their" \
    " user_type set to the name. Raises ParseError on any failure."
    if not isinstance(text, str) :
        raise TypeError("text must be a str")
    #end if
    if len(text) == 0 :
        raise ParseError("Empty type in '%s'" % text)
    #end if
    return \
        _from_string(text, resolve, 0)
#end from_string

#+
# Printing of complete type names
#-

def to_string(complete_type, expand_user_types = False) :
    "returns the complete type name for the CompleteType tree complete_type." \
    " If expand_user_types, then user-defined types are written out in terms of" \
    " built-in types, otherwise they are represented by their names."
    if not isinstance(complete_type, CompleteType) :
        raise TypeError("complete_type must be a CompleteType")
    #end if
    if not expand_user_types and complete_type.user_type != None :
        result = complete_type.user_type
    else :
        signature = complete_type.signature
        contained = complete_type.contained_types
        if signature in code_to_keyword :
            result = code_to_keyword[signature[0]]
        elif complete_type.is_dict and len(contained) == 2 :
            result = \
                (
                    "%s%s,%s%s"
                %
                    (
                        DICT_PREFIX,
                        to_string(contained[0], expand_user_types),
                        to_string(contained[1], expand_user_types),
                        ARGS_END,
                    )
                )
        elif complete_type.is_array and len(contained) == 1 :
            result = ARRAY_PREFIX + to_string(contained[0], expand_user_types) + ARGS_END
        elif complete_type.is_struct :
            result = \
                (
                    STRUCT_PREFIX
                +
                    ",".join(to_string(elt, expand_user_types) for elt in contained)
                +
                    ARGS_END
                )
        else :
            raise ValueError("ill-formed CompleteType node with signature %r" % signature)
        #end if
    #end if
    return \
        result
#end to_string

#+
# Inferring complete type names from signatures
#-

def name_from_signature(signature, disambiguate = None) :
    "returns a complete type name, suitable for passing to from_string(), for the" \
    " single complete type described by the D-Bus signature. “disambiguate”, if not" \
    " None, is called as\n" \
    "\n" \
    "    disambiguate(signature)\n" \
    "\n" \
    " for the whole signature and for each type contained within it, and can return" \
    " the name of a user-defined type to use for that signature, or None if it has" \
    " no preference. It can also raise an exception (normally ParseError), which" \
    " aborts the inference. Note that variants are only named via disambiguate;" \
    " generic inference does not handle them."
    if not isinstance(signature, str) :
        raise TypeError("signature must be a str")
    #end if
    error = dbussig.Error.init()
    if not dbussig.signature_validate_single(signature, error) :
        raise ParseError \
          (
            "Signature '%s' not valid: %s: %s" % (signature, error.name, error.message)
          )
    #end if
    result = None
    if disambiguate != None :
        result = disambiguate(signature)
        if result == "" :
            result = None
        #end if
        if result != None :
            _log.debug("signature %r disambiguated as %r", signature, result)
        #end if
    #end if
    if result == None :
        sigiter = SignatureIter.init(signature)
        typecode = sigiter.current_type
        if typecode in inferable_codes :
            result = inferable_codes[typecode]
        elif typecode == DBUS.TYPE_ARRAY and sigiter.element_type == DBUS.TYPE_DICT_ENTRY :
            entry = sigiter.recurse()
            result = \
                (
                    DICT_PREFIX
                +
                    ",".join
                      (
                        name_from_signature(elt.signature, disambiguate)
                        for elt in entry.recurse()
                      )
                +
                    ARGS_END
                )
        elif typecode == DBUS.TYPE_ARRAY :
            result = ARRAY_PREFIX + name_from_signature(signature[1:], disambiguate) + ARGS_END
        elif typecode == DBUS.TYPE_STRUCT :
            result = \
                (
                    STRUCT_PREFIX
                +
                    ",".join
                      (
                        name_from_signature(elt.signature, disambiguate)
                        for elt in sigiter.recurse()
                      )
                +
                    ARGS_END
                )
        else :
            raise ParseError("Don't know how to parse signature '%s'" % signature)
        #end if
    #end if
    return \
        result
#end name_from_signature
