"""Default shader sources for drawing text from the atlas, and their uniforms.

The fragment shader takes the median of the three distance channels,
anti-aliases with screen space derivatives and applies gamma and optional
premultiplication. Vertex attributes match the mesh layout: position (x, y,
z, w) and texture coordinate (u, v).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple, Union

from sdftext.options import DrawOptions

Color = Tuple[float, float, float, float]

VERTEX_SHADER = """#version 150
uniform mat4 uModelViewProjection;
in vec4 aPosition;
in vec2 aTexCoord;
out vec2 TexCoord;
void main()
{
    gl_Position = uModelViewProjection * aPosition;
    TexCoord = aTexCoord;
}
"""

FRAGMENT_SHADER = """#version 150
uniform sampler2D uTex0;
uniform vec4      uFgColor;
uniform float     uPremultiply;
uniform float     uGamma;
in vec2           TexCoord;
out vec4          Color;

float median( float r, float g, float b ) {
    return max( min( r, g ), min( max( r, g ), b ) );
}

vec2 safeNormalize( in vec2 v ) {
    float len = length( v );
    len = ( len > 0.0 ) ? 1.0 / len : 0.0;
    return v * len;
}

void main(void) {
    vec2 uv = TexCoord * vec2( textureSize( uTex0, 0 ) );
    vec2 Jdx = dFdx( uv );
    vec2 Jdy = dFdy( uv );
    vec3 sample = texture( uTex0, TexCoord ).rgb;
    float sigDist = median( sample.r, sample.g, sample.b ) - 0.5;
    // distance in pixels from the texel distance gradient
    vec2 gradDist = safeNormalize( vec2( dFdx( sigDist ), dFdy( sigDist ) ) );
    vec2 grad = vec2( gradDist.x * Jdx.x + gradDist.y * Jdy.x, gradDist.x * Jdx.y + gradDist.y * Jdy.y );
    const float kThickness = 0.125;
    const float kNormalization = kThickness * 0.5 * sqrt( 2.0 );
    float afwidth = min( kNormalization * length( grad ), 0.5 );
    float opacity = smoothstep( 0.0 - afwidth, 0.0 + afwidth, sigDist );
    Color.a = pow( uFgColor.a * opacity, 1.0 / uGamma );
    Color.rgb = mix( uFgColor.rgb, uFgColor.rgb * Color.a, uPremultiply );
}
"""

VERTEX_SHADER_ES = """#version 100
precision mediump float;
uniform mat4 uModelViewProjection;
attribute vec4 aPosition;
attribute vec2 aTexCoord;
varying vec2 TexCoord;
void main()
{
    gl_Position = uModelViewProjection * aPosition;
    TexCoord = aTexCoord;
}
"""

# ES 2 has no textureSize(), the texture size comes in as uniform
FRAGMENT_SHADER_ES = """#version 100
#extension GL_OES_standard_derivatives : enable
precision mediump float;
precision mediump sampler2D;
uniform sampler2D uTex0;
uniform vec2      uTexSize;
uniform vec4      uFgColor;
uniform float     uPremultiply;
uniform float     uGamma;
varying vec2      TexCoord;

float median( float r, float g, float b ) {
    return max( min( r, g ), min( max( r, g ), b ) );
}

vec2 safeNormalize( in vec2 v ) {
    float len = length( v );
    len = ( len > 0.0 ) ? 1.0 / len : 0.0;
    return v * len;
}

void main(void) {
    vec2 uv = TexCoord * uTexSize;
    vec2 Jdx = dFdx( uv );
    vec2 Jdy = dFdy( uv );
    vec3 sample = texture2D( uTex0, TexCoord ).rgb;
    float sigDist = median( sample.r, sample.g, sample.b ) - 0.5;
    vec2 gradDist = safeNormalize( vec2( dFdx( sigDist ), dFdy( sigDist ) ) );
    vec2 grad = vec2( gradDist.x * Jdx.x + gradDist.y * Jdy.x, gradDist.x * Jdx.y + gradDist.y * Jdy.y );
    const float kThickness = 0.125;
    float kNormalization = kThickness * 0.5 * sqrt( 2.0 );
    float afwidth = min( kNormalization * length( grad ), 0.5 );
    float opacity = smoothstep( 0.0 - afwidth, 0.0 + afwidth, sigDist );
    vec4 color;
    color.a = pow( uFgColor.a * opacity, 1.0 / uGamma );
    color.rgb = mix( uFgColor.rgb, uFgColor.rgb * color.a, uPremultiply );
    gl_FragColor = color;
}
"""


def shader_sources(es: bool = False) -> Tuple[str, str]:
    """Tuple (vertex, fragment) source of the default shader."""
    if es:
        return VERTEX_SHADER_ES, FRAGMENT_SHADER_ES
    return VERTEX_SHADER, FRAGMENT_SHADER


@dataclass(frozen=True)
class ShaderUniforms:
    """
    Uniform values of the default shader.

    Attributes:
        fg_color: Text color as RGBA floats in [0, 1].
        premultiply: Output premultiplied alpha.
        gamma: Gamma applied to the coverage.
    """

    fg_color: Color = (1.0, 1.0, 1.0, 1.0)
    premultiply: bool = False
    gamma: float = 2.2

    @classmethod
    def from_options(cls, options: DrawOptions, fg_color: Color = (1.0, 1.0, 1.0, 1.0)) -> ShaderUniforms:
        return cls(fg_color=fg_color, premultiply=options.premultiply, gamma=options.gamma)

    def as_dict(self) -> Dict[str, Union[float, Color]]:
        """Uniform name to value, ready to hand to a GL binding."""
        return {
            "uFgColor": self.fg_color,
            "uPremultiply": 1.0 if self.premultiply else 0.0,
            "uGamma": self.gamma,
        }
