"""
Registry of user-defined D-Bus types: structs and enumerations declared by
the user of an interface. A Declarations object supplies the resolver and
disambiguator functions that completetype needs to work with user-defined
type names, and can reconcile a declared complete type with the D-Bus
signature of an argument or property.
"""
#+
# Copyright 2017 Lawrence D'Oliveiro <ldo@geek-central.gen.nz>.
# Licensed under the GNU Lesser General Public License v2.1 or later.
#-

import enum
import logging
from dbussig import \
    DBUS
import completetype
from completetype import \
    ParseError

_log = logging.getLogger(__name__)

class ENUM_KIND(enum.Enum) :
    "the kinds of enumerations that can be declared."
    ENUM = "enum" # a set of distinct values
    FLAGS = "flags" # a set of bit masks that can be combined
    ERROR_DOMAIN = "error_domain" # error names; cannot be used as a type

    @property
    def usable_as_type(self) :
        return \
            self != ENUM_KIND.ERROR_DOMAIN
    #end usable_as_type

#end ENUM_KIND

class StructMember :
    "a named member of a declared struct, with its complete type name." \
    " “complete_type” is filled in by Declarations.compute_signatures()."

    __slots__ = ("name", "type_string", "complete_type") # to forestall typos

    def __init__(self, name, type_string) :
        if not isinstance(name, str) or not isinstance(type_string, str) :
            raise TypeError("name and type_string must be strings")
        #end if
        self.name = name
        self.type_string = type_string
        self.complete_type = None
    #end __init__

    @classmethod
    def from_spec(celf, spec) :
        "constructs a StructMember from a “type:name” string."
        type_string, sep, name = spec.partition(":")
        if sep == "" :
            raise ParseError("No typename:name separator found for value '%s'" % spec)
        #end if
        return \
            celf(name, type_string)
    #end from_spec

    @property
    def signature(self) :
        return \
            (lambda : None, lambda : self.complete_type.signature)[self.complete_type != None]()
    #end signature

    def __repr__(self) :
        return \
            "%s(%s, %s)" % (type(self).__name__, repr(self.name), repr(self.type_string))
    #end __repr__

#end StructMember

class Struct :
    "a declared struct type. Specify either “members”, a sequence of StructMember" \
    " objects or “type:name” strings, or “type_string”, the complete type name of a" \
    " user-supplied struct such as “Struct<String,Dict<String,Variant>>”. The" \
    " signature is filled in by Declarations.compute_signatures()."

    __slots__ = ("name", "members", "type_string", "user_supplied", "signature") # to forestall typos

    def __init__(self, name, members = None, type_string = None) :
        if not isinstance(name, str) or len(name) == 0 :
            raise TypeError("name must be a nonempty str")
        #end if
        if (members == None) == (type_string == None) :
            raise ValueError("specify exactly one of members or type_string")
        #end if
        self.name = name
        self.signature = None
        if type_string != None :
            if not isinstance(type_string, str) :
                raise TypeError("type_string must be a str")
            #end if
            self.members = ()
            self.type_string = type_string
            self.user_supplied = True
        else :
            self.members = tuple \
              (
                (lambda : StructMember.from_spec(m), lambda : m)[isinstance(m, StructMember)]()
                for m in members
              )
            if len(self.members) == 0 :
                raise ValueError("struct %s has no members" % name)
            #end if
            self.type_string = \
                (
                    completetype.STRUCT_PREFIX
                +
                    ",".join(m.type_string for m in self.members)
                +
                    completetype.ARGS_END
                )
            self.user_supplied = False
        #end if
    #end __init__

    def __repr__(self) :
        return \
            (
                "%s(%s, %s, %s)"
            %
                (type(self).__name__, repr(self.name), repr(self.type_string), repr(self.signature))
            )
    #end __repr__

#end Struct

class Enum :
    "a declared enumeration. Enumerations of kind ENUM or FLAGS are transmitted" \
    " as UInt32 values."

    __slots__ = ("name", "kind") # to forestall typos

    def __init__(self, name, kind) :
        if not isinstance(name, str) or len(name) == 0 :
            raise TypeError("name must be a nonempty str")
        #end if
        if not isinstance(kind, ENUM_KIND) :
            raise TypeError("kind must be an ENUM_KIND enum value")
        #end if
        self.name = name
        self.kind = kind
    #end __init__

    def __repr__(self) :
        return \
            "%s(%s, %s)" % (type(self).__name__, repr(self.name), self.kind)
    #end __repr__

#end Enum

class Declarations :
    "a collection of declared structs and enumerations. The break_down and infer" \
    " methods are suitable for passing as the resolve and disambiguate arguments to" \
    " completetype.from_string() and completetype.name_from_signature() respectively;" \
    " the parse and name_from_signature methods do this for you."

    ENUM_SUBSTITUTE = "UInt32" # complete type name for ENUM and FLAGS enumerations

    def __init__(self) :
        self.structs = []
        self.enums = []
    #end __init__

    def _check_unique(self, name) :
        if self.find_struct(name) != None or self.find_enum(name) != None :
            raise ValueError("type %s is already declared" % name)
        #end if
        if name in completetype.keyword_to_code :
            raise ValueError("type %s is a built-in type" % name)
        #end if
    #end _check_unique

    def add_struct(self, struct) :
        if not isinstance(struct, Struct) :
            raise TypeError("struct must be a Struct")
        #end if
        self._check_unique(struct.name)
        self.structs.append(struct)
        _log.debug("declared struct %s as %s", struct.name, struct.type_string)
        return \
            self
    #end add_struct

    def add_enum(self, enumeration) :
        if not isinstance(enumeration, Enum) :
            raise TypeError("enumeration must be an Enum")
        #end if
        self._check_unique(enumeration.name)
        self.enums.append(enumeration)
        _log.debug("declared %s %s", enumeration.kind.value, enumeration.name)
        return \
            self
    #end add_enum

    def find_struct(self, name) :
        "returns the struct with the given name, or None."
        return \
            next((s for s in self.structs if s.name == name), None)
    #end find_struct

    def find_enum(self, name) :
        "returns the enumeration with the given name, or None."
        return \
            next((e for e in self.enums if e.name == name), None)
    #end find_enum

    def find_structs_by_signature(self, signature) :
        "returns a list of all the structs whose computed signature is signature."
        return \
            list(s for s in self.structs if s.signature == signature)
    #end find_structs_by_signature

    def break_down(self, user_type) :
        "resolver for completetype.from_string(): returns the complete type name" \
        " that user_type stands for."
        struct = self.find_struct(user_type)
        if struct != None :
            result = struct.type_string
        else :
            enumeration = self.find_enum(user_type)
            if enumeration != None and enumeration.kind.usable_as_type :
                result = self.ENUM_SUBSTITUTE
            else :
                raise ParseError("Unknown type %s" % user_type)
            #end if
        #end if
        return \
            result
    #end break_down

    def infer(self, signature) :
        "disambiguator for completetype.name_from_signature(): names the declared" \
        " struct with the given signature, insisting there be exactly one, and names" \
        " variants. Returns None for anything else."
        if signature.startswith(chr(DBUS.STRUCT_BEGIN_CHAR)) :
            matches = self.find_structs_by_signature(signature)
            if len(matches) == 0 :
                raise ParseError \
                  (
                        "No declared structs with signature '%s'. If you really want an"
                        " anonymous structure, please specify it in a complete type annotation."
                    %
                        signature
                  )
            #end if
            if len(matches) > 1 :
                raise ParseError \
                  (
                        "Multiple structs with signature '%s' exists. Please use a complete"
                        " type annotation to disambiguate."
                    %
                        signature
                  )
            #end if
            result = matches[0].name
        elif signature == chr(DBUS.TYPE_VARIANT) :
            result = completetype.code_to_keyword[signature]
        else :
            result = None
        #end if
        return \
            result
    #end infer

    def compute_signatures(self) :
        "works out the signature of every declared struct that does not yet have one," \
        " in order of declaration. Raises ParseError if a struct refers to an unknown" \
        " type."
        for struct in self.structs :
            if struct.signature == None :
                if struct.user_supplied :
                    struct.signature = self.parse(struct.type_string).signature
                else :
                    for member in struct.members :
                        member.complete_type = self.parse(member.type_string)
                    #end for
                    struct.signature = \
                        (
                            chr(DBUS.STRUCT_BEGIN_CHAR)
                        +
                            "".join(m.signature for m in struct.members)
                        +
                            chr(DBUS.STRUCT_END_CHAR)
                        )
                #end if
                _log.debug("struct %s has signature %s", struct.name, struct.signature)
            #end if
        #end for
        return \
            self
    #end compute_signatures

    def parse(self, type_string) :
        "parses type_string, resolving the names of declared types."
        return \
            completetype.from_string(type_string, self.break_down)
    #end parse

    def name_from_signature(self, signature) :
        "infers a complete type name for signature, naming declared structs."
        self.compute_signatures()
        return \
            completetype.name_from_signature(signature, self.infer)
    #end name_from_signature

    def determine_type(self, expected_signature, type_string = None) :
        "returns the CompleteType for an argument or property with the given D-Bus" \
        " signature. If type_string is specified, it is the complete type the user" \
        " declared, and must match expected_signature; otherwise a complete type" \
        " is inferred from the signature."
        self.compute_signatures()
        if type_string != None :
            result = self.parse(type_string)
            if result.signature != expected_signature :
                raise ParseError \
                  (
                        "Signature of the complete type %s is %s and it doesn't match"
                        " the given signature %s"
                    %
                        (type_string, result.signature, expected_signature)
                  )
            #end if
        else :
            result = self.parse(self.name_from_signature(expected_signature))
        #end if
        return \
            result
    #end determine_type

#end Declarations
