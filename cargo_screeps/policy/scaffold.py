"""
Scaffold templates — known shapes of the loader `cargo web` generates.

The generated loader wraps the interesting initialization code in
environment-detection boilerplate (AMD / CommonJS / browser global, node
vs. fetch-based instantiation).  Each upstream generator version that we
know how to strip is recorded here as a named ``ScaffoldTemplate``: an
expected prefix and suffix, with ``XXX`` standing in for the crate name.

Supporting a new generator version is a matter of appending a template.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ScaffoldTemplate:
    """Expected text before and after the bootstrap body."""

    name: str
    generator: str
    prefix: str
    suffix: str
    placeholder: str = "XXX"


CARGO_WEB_0_6 = ScaffoldTemplate(
    name="cargo-web-0.6",
    generator="cargo-web 0.6 (stdweb 0.4)",
    prefix=r'''"use strict";

if( typeof Rust === "undefined" ) {
    var Rust = {};
}

(function( root, factory ) {
    if( typeof define === "function" && define.amd ) {
        define( [], factory );
    } else if( typeof module === "object" && module.exports ) {
        module.exports = factory();
    } else {
        Rust.XXX = factory();
    }
}( this, function() {
    return (function( module_factory ) {
        var instance = module_factory();

        if( typeof process === "object" && typeof process.versions === "object" && typeof process.versions.node === "string" ) {
            var fs = require( "fs" );
            var path = require( "path" );
            var wasm_path = path.join( __dirname, "XXX.wasm" );
            var buffer = fs.readFileSync( wasm_path );
            var mod = new WebAssembly.Module( buffer );
            var wasm_instance = new WebAssembly.Instance( mod, instance.imports );
            return instance.initialize( wasm_instance );
        } else {
            var file = fetch( "XXX.wasm", {credentials: "same-origin"} );

            var wasm_instance = ( typeof WebAssembly.instantiateStreaming === "function"
                ? WebAssembly.instantiateStreaming( file, instance.imports )
                    .then( function( result ) { return result.instance; } )

                : file
                    .then( function( response ) { return response.arrayBuffer(); } )
                    .then( function( bytes ) { return WebAssembly.compile( bytes ); } )
                    .then( function( mod ) { return WebAssembly.instantiate( mod, instance.imports ) } ) );

            return wasm_instance
                .then( function( wasm_instance ) {
                    var exports = instance.initialize( wasm_instance );
                    console.log( "Finished loading Rust wasm module 'XXX'" );
                    return exports;
                })
                .catch( function( error ) {
                    console.log( "Error loading Rust wasm module 'XXX':", error );
                    throw error;
                });
        }
    }( function() {''',
    suffix='''
    }
     ));
    }));
    ''',
)


# Tried in order; the first template whose prefix and suffix both match wins.
KNOWN_TEMPLATES: Tuple[ScaffoldTemplate, ...] = (CARGO_WEB_0_6,)
